from __future__ import annotations
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, ForeignKey, DateTime, func, UniqueConstraint
from .authz import Base


class Vehicle(Base):
    __tablename__ = 'vehicles'
    STATUS_ACTIVE = 'active'
    STATUS_INACTIVE = 'inactive'
    STATUS_MAINTENANCE = 'maintenance'
    ALL_STATUSES = (STATUS_ACTIVE, STATUS_INACTIVE, STATUS_MAINTENANCE)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    subsidiary_id: Mapped[int] = mapped_column(ForeignKey('subsidiaries.id'), nullable=False, index=True)
    vehicle_number: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    make: Mapped[Optional[str]] = mapped_column(String(64))
    model: Mapped[Optional[str]] = mapped_column(String(64))
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_ACTIVE)
    updated_at: Mapped[str] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (UniqueConstraint('subsidiary_id', 'vehicle_number', name='uq_vehicle_number'),)

__all__ = ["Vehicle"]
