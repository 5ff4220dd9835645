import os, sys, pytest
# Ensure the backend directory is on path so 'fleet' can be imported
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
from fleet import create_app, get_db
from fleet.models.authz import Base
# Import all model modules to ensure tables are registered before create_all
import fleet.models.audit  # noqa: F401
import fleet.models.subsidiary  # noqa: F401
import fleet.models.vehicle  # noqa: F401
import fleet.models.vendor  # noqa: F401
import fleet.models.service_ticket  # noqa: F401
import fleet.models.service_ticket_approval  # noqa: F401

@pytest.fixture(scope='session', autouse=True)
def app_instance():
    os.environ['DATABASE_URL'] = 'sqlite+pysqlite:///:memory:'
    app = create_app({'TESTING': True, 'TICKET_NUMBER_PREFIX': 'ST'})
    # After app and blueprints are registered, ensure all tables exist
    with app.app_context():
        engine = get_db().get_bind()
        Base.metadata.create_all(engine)
    yield app

@pytest.fixture()
def client(app_instance):
    return app_instance.test_client()

@pytest.fixture()
def app_context(app_instance):
    with app_instance.app_context():
        yield app_instance
