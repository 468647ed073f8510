"""
Cycle Metadata Store: the singleton `cycle_metadata` row
"""
from typing import Optional
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from models import CycleMetadata, METADATA_ROW_ID, utcnow
from core.exceptions import StoreUnavailable

logger = logging.getLogger(__name__)


class CycleMetadataStore:

    relation = "cycle_metadata"

    @staticmethod
    def read(db: Session) -> Optional[CycleMetadata]:
        """Return the metadata row, or None on the very first run"""
        try:
            return db.query(CycleMetadata).filter(
                CycleMetadata.id == METADATA_ROW_ID
            ).first()
        except SQLAlchemyError as e:
            raise StoreUnavailable(CycleMetadataStore.relation, e) from e

    @staticmethod
    def create(db: Session, recorded_period: str) -> CycleMetadata:
        """
        Insert the singleton row for the first cycle

        Raises:
            IntegrityError: another client created the row first
        """
        meta = CycleMetadata(
            id=METADATA_ROW_ID,
            cycle_count=0,
            recorded_period=recorded_period,
            version=1,
            updated_at=utcnow()
        )
        try:
            db.add(meta)
            db.flush()
        except IntegrityError:
            raise
        except SQLAlchemyError as e:
            raise StoreUnavailable(CycleMetadataStore.relation, e) from e
        return meta

    @staticmethod
    def write(db: Session, cycle_count: int, recorded_period: str) -> CycleMetadata:
        """
        Unconditional upsert of the singleton row, bumping its version

        Used by the administrative reset (under the row lock). The rollover
        paths go through core.locks.compare_and_swap_metadata instead so
        that only one racer wins.
        """
        try:
            meta = db.query(CycleMetadata).filter(
                CycleMetadata.id == METADATA_ROW_ID
            ).first()
            if meta is None:
                meta = CycleMetadata(
                    id=METADATA_ROW_ID,
                    cycle_count=cycle_count,
                    recorded_period=recorded_period,
                    version=1,
                    updated_at=utcnow()
                )
                db.add(meta)
            else:
                meta.cycle_count = cycle_count
                meta.recorded_period = recorded_period
                meta.version = meta.version + 1
                meta.updated_at = utcnow()
            db.flush()
        except IntegrityError:
            # another client inserted the row first; the caller decides
            raise
        except SQLAlchemyError as e:
            raise StoreUnavailable(CycleMetadataStore.relation, e) from e

        logger.info(f"Metadata written: cycle={cycle_count} period={recorded_period!r}")
        return meta
