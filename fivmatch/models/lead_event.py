"""
LeadEvent model — append-only audit trail, one row per lifecycle event.
"""
from sqlalchemy import Column, Integer, Text, DateTime, JSON, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from fivmatch.database import Base


class LeadEvent(Base):
    __tablename__ = 'lead_events'

    id = Column(Integer, primary_key=True, autoincrement=True)
    lead_id = Column(Text, ForeignKey('leads.id', ondelete='CASCADE'), nullable=False, index=True)
    type = Column(Text, nullable=False)              # CREATED, STATUS_CHANGED, …
    payload = Column(JSON, default=dict)
    actor = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    lead = relationship('Lead', back_populates='events')

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'type': self.type,
            'payload': self.payload or {},
            'actor': self.actor,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
