"""
Audit service - post-commit domain events.

Events are written in their own session after the financial transaction
has committed. Writing an event is best effort: a failure is logged and
swallowed, never raised to the caller and never undoes the committed
transaction.
"""
import logging
from typing import Any, Optional

from pydantic_core import to_jsonable_python
from sqlalchemy.orm import sessionmaker

from models import AuditEvent

logger = logging.getLogger(__name__)


class AuditService:
     """Append-only store of billing domain events."""

     def __init__(self, session_factory: sessionmaker):
          self.session_factory = session_factory

     def append(
          self,
          club_id: int,
          aggregate_type: str,
          aggregate_id: Any,
          event_type: str,
          data: Optional[dict] = None,
          user_id: Optional[str] = None,
          user_email: Optional[str] = None,
     ) -> bool:
          """
          Record an event. Returns False when the event could not be stored.
          """
          try:
               with self.session_factory.begin() as db:
                    db.add(AuditEvent(
                         club_id=club_id,
                         aggregate_type=aggregate_type,
                         aggregate_id=str(aggregate_id),
                         event_type=event_type,
                         data=to_jsonable_python(data) if data is not None else None,
                         user_id=str(user_id) if user_id is not None else None,
                         user_email=user_email,
                    ))
          except Exception:
               logger.exception(
                    "Failed to record audit event %s %s/%s for club %s",
                    event_type, aggregate_type, aggregate_id, club_id,
               )
               return False
          return True
