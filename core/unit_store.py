"""
Unit Store: the `units` relation

Each of the 30 units is pre-provisioned; a claim only sets or clears the
claimant columns. The store never decides anything about cycles, that is
the Rollover Engine's job.
"""
from typing import Iterable, List
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models import Unit, TOTAL_UNITS, utcnow
from core.exceptions import StoreUnavailable

logger = logging.getLogger(__name__)


class UnitStore:
    """Read and conditional-write access to the 30 units"""

    relation = "units"

    @staticmethod
    def list_units(db: Session) -> List[Unit]:
        """
        Return all units ordered by index

        Raises:
            StoreUnavailable: the query failed at the persistence layer
        """
        try:
            return db.query(Unit).order_by(Unit.unit_index).all()
        except SQLAlchemyError as e:
            raise StoreUnavailable(UnitStore.relation, e) from e

    @staticmethod
    def claim_units(db: Session, indices: Iterable[int], claimant_name: str) -> int:
        """
        Claim a set of units in one bulk conditional update

        Only rows that are still unclaimed at apply time are written, so two
        clients racing for the same unit cannot overwrite each other. Partial
        application is not an error here; the caller re-reads to find out
        which units it actually got.

        Args:
            db: SQLAlchemy Session
            indices: unit indices to claim
            claimant_name: already normalised name

        Returns:
            number of rows updated

        Raises:
            StoreUnavailable: transport/persistence failure
        """
        wanted = sorted(set(indices))
        try:
            updated = db.query(Unit).filter(
                Unit.unit_index.in_(wanted),
                Unit.claimant_name.is_(None)
            ).update(
                {Unit.claimant_name: claimant_name, Unit.claimed_at: utcnow()},
                synchronize_session=False
            )
        except SQLAlchemyError as e:
            raise StoreUnavailable(UnitStore.relation, e) from e

        logger.info(
            f"Claimed {updated}/{len(wanted)} units {wanted} for {claimant_name!r}"
        )
        return updated

    @staticmethod
    def clear_all(db: Session) -> int:
        """
        Remove every claim (period reset and post-archive reset)

        Idempotent: clearing an already empty board writes nothing.

        Returns:
            number of rows that were claimed before clearing
        """
        try:
            cleared = db.query(Unit).filter(
                Unit.claimant_name.isnot(None)
            ).update(
                {Unit.claimant_name: None, Unit.claimed_at: None},
                synchronize_session=False
            )
        except SQLAlchemyError as e:
            raise StoreUnavailable(UnitStore.relation, e) from e

        logger.info(f"Cleared {cleared} claimed units")
        return cleared

    @staticmethod
    def ensure_units(db: Session) -> int:
        """
        Provision any missing unit rows 1..30 (run once at startup)

        Returns:
            number of rows created
        """
        existing = {
            index for (index,) in db.query(Unit.unit_index).all()
        }
        missing = [i for i in range(1, TOTAL_UNITS + 1) if i not in existing]
        for index in missing:
            db.add(Unit(unit_index=index))
        if missing:
            db.commit()
            logger.info(f"Provisioned units {missing}")
        return len(missing)
