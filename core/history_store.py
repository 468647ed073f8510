"""
History Store: append-only archive of completed cycles
"""
from typing import List, Sequence
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models import HistoryEntry
from core.exceptions import StoreUnavailable

logger = logging.getLogger(__name__)


class HistoryStore:

    relation = "history"

    @staticmethod
    def append_batch(db: Session, entries: Sequence[HistoryEntry]) -> int:
        """
        Insert one archived cycle

        The caller is responsible for passing a complete 30-row batch; the
        store does not check it. Not idempotent: appending the same batch
        twice archives the cycle twice.
        """
        try:
            db.add_all(entries)
            db.flush()
        except SQLAlchemyError as e:
            raise StoreUnavailable(HistoryStore.relation, e) from e

        logger.info(f"Appended {len(entries)} history entries")
        return len(entries)

    @staticmethod
    def list_all(db: Session) -> List[HistoryEntry]:
        try:
            return db.query(HistoryEntry).order_by(HistoryEntry.id).all()
        except SQLAlchemyError as e:
            raise StoreUnavailable(HistoryStore.relation, e) from e
