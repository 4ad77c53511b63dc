"""
Document numbering - receipt and arrangement numbers.

Numbers look like RCP-2024-00042: a prefix, the year and a five-digit
sequence scoped to the club, the prefix and the year. The counter row is
advanced with an atomic increment inside the caller's transaction, so a
rolled-back settlement also rolls back its number and two concurrent
settlements can never draw the same one.
"""
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from models import DocumentSequence

RECEIPT_PREFIX = "RCP"
ARRANGEMENT_PREFIX = "PA"


def next_sequence_value(db: Session, club_id: int, prefix: str, year: int) -> int:
     """
     Reserve the next value of the (club, prefix, year) counter.

     The first number of a year inserts the counter row. If another
     transaction inserts the same row concurrently, the unique constraint
     fails this transaction and the caller may retry.
     """
     result = db.execute(
          update(DocumentSequence)
          .where(
               DocumentSequence.club_id == club_id,
               DocumentSequence.prefix == prefix,
               DocumentSequence.year == year,
          )
          .values(last_value=DocumentSequence.last_value + 1)
          .execution_options(synchronize_session=False)
     )
     if result.rowcount == 0:
          db.add(DocumentSequence(club_id=club_id, prefix=prefix, year=year, last_value=1))
          db.flush()
          return 1

     return db.execute(
          select(DocumentSequence.last_value).where(
               DocumentSequence.club_id == club_id,
               DocumentSequence.prefix == prefix,
               DocumentSequence.year == year,
          )
     ).scalar_one()


def format_document_number(prefix: str, year: int, value: int) -> str:
     return f"{prefix}-{year}-{value:05d}"


def next_document_number(db: Session, club_id: int, prefix: str, year: int) -> str:
     """Reserve and format the next document number, e.g. PA-2024-00001."""
     return format_document_number(prefix, year, next_sequence_value(db, club_id, prefix, year))
