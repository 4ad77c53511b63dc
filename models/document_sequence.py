from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint, func
from .base import Base


class DocumentSequence(Base):
     """
     DocumentSequence model - per-club, per-prefix, per-year counter.

     Backs receipt numbers (RCP-2024-00001) and arrangement numbers
     (PA-2024-00001). `last_value` is only advanced with an atomic
     increment inside the transaction that consumes the number.
     """
     __tablename__ = "document_sequences"
     __table_args__ = (
          UniqueConstraint("club_id", "prefix", "year", name="uq_document_sequences_scope"),
     )

     id = Column(Integer, primary_key=True, autoincrement=True)
     club_id = Column(Integer, ForeignKey("clubs.id", ondelete="CASCADE"), nullable=False)
     prefix = Column(String(10), nullable=False)
     year = Column(Integer, nullable=False)
     last_value = Column(Integer, default=0, nullable=False)
     updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

     def __repr__(self):
          return f"<DocumentSequence(club_id={self.club_id}, prefix='{self.prefix}', year={self.year}, last_value={self.last_value})>"
