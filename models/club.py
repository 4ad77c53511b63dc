from sqlalchemy import Column, Integer, String, DateTime, func
from sqlalchemy.orm import relationship
from .base import Base


class Club(Base):
     """
     Club model - the tenant that owns members, accounts and billing data.
     """
     __tablename__ = "clubs"

     id = Column(Integer, primary_key=True, autoincrement=True)
     name = Column(String(255), nullable=False)
     created_at = Column(DateTime, server_default=func.now(), nullable=False)

     # Relationships
     billing_settings = relationship("ClubBillingSettings", back_populates="club", uselist=False)

     def __repr__(self):
          return f"<Club(id={self.id}, name='{self.name}')>"
