"""
AuditEvent model - append-only record of billing domain events.

Rows are written after the financial transaction they describe has
committed; they are never updated or deleted.
"""
from sqlalchemy import Column, Integer, String, DateTime, JSON, func
from .base import Base


class AuditEvent(Base):
     __tablename__ = "audit_events"

     id = Column(Integer, primary_key=True, autoincrement=True)
     club_id = Column(Integer, nullable=False, index=True)
     aggregate_type = Column(String(100), nullable=False)
     aggregate_id = Column(String(100), nullable=False, index=True)
     event_type = Column(String(100), nullable=False)
     data = Column(JSON, nullable=True)
     user_id = Column(String(100), nullable=True)
     user_email = Column(String(255), nullable=True)
     created_at = Column(DateTime, server_default=func.now(), nullable=False)

     def __repr__(self):
          return f"<AuditEvent(id={self.id}, {self.aggregate_type}/{self.aggregate_id} {self.event_type})>"
