from __future__ import annotations
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Boolean, ForeignKey, DateTime, func
from .authz import Base


class Vendor(Base):
    __tablename__ = 'vendors'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    subsidiary_id: Mapped[int] = mapped_column(ForeignKey('subsidiaries.id'), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(150), nullable=False, index=True)
    contact_email: Mapped[str] = mapped_column(String(150), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

__all__ = ["Vendor"]
