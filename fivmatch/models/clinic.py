"""
Clinic model — partner clinics that verified leads are dispatched to.

Only active clinics are eligible assignment targets; deleting a clinic from the
admin panel is a soft delete (active=false).
"""
import uuid

from sqlalchemy import Column, Text, Boolean, DateTime, JSON
from sqlalchemy.sql import func

from fivmatch.database import Base


class Clinic(Base):
    __tablename__ = 'clinics'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(Text, nullable=False)
    email = Column(Text, nullable=False)
    phone = Column(Text, nullable=True)
    city_coverage = Column(JSON, default=list)
    active = Column(Boolean, nullable=False, default=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'city_coverage': list(self.city_coverage or []),
            'active': self.active,
            'notes': self.notes,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
