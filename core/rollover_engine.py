"""
Rollover Engine: the claim lifecycle state machine

Responsibilities:
1. First run: create the metadata row
2. Period reset: the Hijri month changed, discard the unfinished cycle
3. Completion rollover: all 30 units claimed, archive and start a new cycle
4. Administrative reset

Every trigger (page load, change event, after a claim) runs the same
reconcile() pass. The board state is never stored; it is derived from the
claim count at decision time.

Concurrency:
- Clients reconcile independently with no distributed lock
- Period reset and completion rollover are gated by a compare-and-swap on
  the metadata version, so exactly one racer clears the board and appends
  history; the others see race_lost=True and do nothing
"""
from dataclasses import dataclass, field
from typing import List, Optional
import enum
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models import HistoryEntry, Unit, utcnow
from core.unit_store import UnitStore
from core.metadata_store import CycleMetadataStore
from core.history_store import HistoryStore
from core.locks import compare_and_swap_metadata, with_metadata_lock
from core.change_notifier import (
    ChangeEvent,
    RELATION_UNITS,
    RELATION_METADATA,
    RELATION_HISTORY,
)
from core.exceptions import StoreUnavailable, MetadataNotInitialized
from services.board_service import claimed_count, get_board_state, is_complete, BoardState
from services.naming_service import archived_name
from database import transactional

logger = logging.getLogger(__name__)


class ReconcileOutcome(str, enum.Enum):
    NOOP = "NOOP"
    INITIALIZED = "INITIALIZED"
    PERIOD_RESET = "PERIOD_RESET"
    ROLLED_OVER = "ROLLED_OVER"
    ADMIN_RESET = "ADMIN_RESET"


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation pass plus the state it left behind"""
    outcome: ReconcileOutcome
    period: str
    cycle_count: int
    recorded_period: str
    # None when the units could not be read ("no data yet")
    units: Optional[List[Unit]]
    archived_cycle: Optional[int] = None
    discarded_claims: int = 0
    race_lost: bool = False
    events: List[ChangeEvent] = field(default_factory=list)

    @property
    def claimed_count(self) -> int:
        return claimed_count(self.units or [])

    @property
    def board_state(self) -> BoardState:
        return get_board_state(self.units or [])


class RolloverEngine:
    """Decides and applies no-op / initialize / period reset / completion rollover"""

    @staticmethod
    def reconcile(db: Session, period: str) -> ReconcileResult:
        """
        Run one reconciliation pass

        Flow:
        1. Read the metadata row
        2. Empty -> initialize (cycle 0, recorded period = period)
        3. Recorded period differs -> period reset (no history written)
        4. 30 units claimed -> completion rollover
        5. Otherwise no-op

        Args:
            db: SQLAlchemy Session
            period: current period name, read once by the caller per pass

        Returns:
            ReconcileResult with the resulting metadata and units

        Raises:
            StoreUnavailable: the metadata row could not be read or a write failed
        """
        meta = CycleMetadataStore.read(db)

        if meta is None:
            return RolloverEngine._initialize(db, period)

        if meta.recorded_period != period:
            return RolloverEngine._period_reset(db, meta.version, meta.recorded_period, period)

        try:
            units = UnitStore.list_units(db)
        except StoreUnavailable as e:
            cycle_count, recorded_period = meta.cycle_count, meta.recorded_period
            db.rollback()
            logger.warning(f"Units unavailable during reconciliation, keeping last state: {e}")
            return ReconcileResult(
                outcome=ReconcileOutcome.NOOP,
                period=period,
                cycle_count=cycle_count,
                recorded_period=recorded_period,
                units=None
            )

        if is_complete(units):
            return RolloverEngine._completion_rollover(
                db, meta.version, meta.cycle_count, period
            )

        return ReconcileResult(
            outcome=ReconcileOutcome.NOOP,
            period=period,
            cycle_count=meta.cycle_count,
            recorded_period=meta.recorded_period,
            units=units
        )

    # ============ First run ============

    @staticmethod
    def _initialize(db: Session, period: str) -> ReconcileResult:
        try:
            RolloverEngine._write_initial_metadata(db, period)
        except IntegrityError:
            logger.info("Metadata was initialized by another client")
            return RolloverEngine._current_state(
                db, ReconcileOutcome.NOOP, period, race_lost=True
            )

        logger.info(f"Initialized cycle metadata for period {period!r}")
        return RolloverEngine._current_state(
            db,
            ReconcileOutcome.INITIALIZED,
            period,
            events=[ChangeEvent(RELATION_METADATA, reason="initialized")]
        )

    @staticmethod
    @transactional
    def _write_initial_metadata(db: Session, period: str) -> None:
        CycleMetadataStore.create(db, recorded_period=period)

    # ============ Period reset ============

    @staticmethod
    def _period_reset(
        db: Session,
        expected_version: int,
        old_period: str,
        period: str
    ) -> ReconcileResult:
        """
        The period changed under an unfinished cycle: clear the board and
        restart the counter. Partial claims are not archived; the number
        discarded is logged.
        """
        discarded = RolloverEngine.apply_period_reset(db, expected_version, period)

        if discarded is None:
            logger.info(f"Period reset to {period!r} already applied by another client")
            return RolloverEngine._current_state(
                db, ReconcileOutcome.NOOP, period, race_lost=True
            )

        if discarded:
            logger.warning(
                f"Period changed {old_period!r} -> {period!r}: "
                f"discarded {discarded} claims of an unfinished cycle"
            )
        else:
            logger.info(f"Period changed {old_period!r} -> {period!r}")

        return RolloverEngine._current_state(
            db,
            ReconcileOutcome.PERIOD_RESET,
            period,
            discarded_claims=discarded,
            events=[
                ChangeEvent(RELATION_UNITS, reason="period_reset"),
                ChangeEvent(RELATION_METADATA, reason="period_reset"),
            ]
        )

    @staticmethod
    @transactional
    def apply_period_reset(db: Session, expected_version: int, period: str) -> Optional[int]:
        """
        Swap metadata to (0, period) and clear the units, atomically

        Returns:
            number of claims discarded, or None if the swap was lost
        """
        if not compare_and_swap_metadata(db, expected_version, 0, period):
            return None
        return UnitStore.clear_all(db)

    # ============ Completion rollover ============

    @staticmethod
    def _completion_rollover(
        db: Session,
        expected_version: int,
        cycle_count: int,
        period: str
    ) -> ReconcileResult:
        new_cycle = cycle_count + 1
        archived = RolloverEngine.apply_completion_rollover(
            db, expected_version, new_cycle, period
        )

        if archived is None:
            logger.info(f"Cycle {new_cycle} already archived by another client")
            return RolloverEngine._current_state(
                db, ReconcileOutcome.NOOP, period, race_lost=True
            )

        logger.info(f"Khatam #{new_cycle} completed in {period!r}, archived {archived} units")
        return RolloverEngine._current_state(
            db,
            ReconcileOutcome.ROLLED_OVER,
            period,
            archived_cycle=new_cycle,
            events=[
                ChangeEvent(RELATION_HISTORY, reason="rollover"),
                ChangeEvent(RELATION_UNITS, reason="rollover"),
                ChangeEvent(RELATION_METADATA, reason="rollover"),
            ]
        )

    @staticmethod
    @transactional
    def apply_completion_rollover(
        db: Session,
        expected_version: int,
        new_cycle: int,
        period: str
    ) -> Optional[int]:
        """
        Archive the board as cycle `new_cycle`, clear it, bump the counter

        The metadata swap comes first so only the winner appends history;
        the whole sequence commits as one transaction.

        Returns:
            number of history rows written, or None if the swap was lost
        """
        if not compare_and_swap_metadata(db, expected_version, new_cycle, period):
            return None

        units = UnitStore.list_units(db)
        batch = [
            HistoryEntry(
                cycle_number=new_cycle,
                unit_index=unit.unit_index,
                claimant_name=archived_name(unit.claimant_name),
                period_name=period,
                archived_at=utcnow()
            )
            for unit in units
        ]
        HistoryStore.append_batch(db, batch)
        UnitStore.clear_all(db)
        return len(batch)

    # ============ Administrative reset ============

    @staticmethod
    def administrative_reset(db: Session, period: str) -> ReconcileResult:
        """
        Operator reset: clear the board and restart the counter at 0

        History is kept. Serialized with everything else through the
        metadata row lock.

        Raises:
            MetadataNotInitialized: no reconciliation has run yet
        """
        cleared = RolloverEngine._apply_administrative_reset(db, period)
        logger.warning(f"Administrative reset: cleared {cleared} claims, period {period!r}")
        return RolloverEngine._current_state(
            db,
            ReconcileOutcome.ADMIN_RESET,
            period,
            discarded_claims=cleared,
            events=[
                ChangeEvent(RELATION_UNITS, reason="admin_reset"),
                ChangeEvent(RELATION_METADATA, reason="admin_reset"),
            ]
        )

    @staticmethod
    @transactional
    def _apply_administrative_reset(db: Session, period: str) -> int:
        meta = with_metadata_lock(db).first()
        if not meta:
            raise MetadataNotInitialized("Cycle metadata has not been initialized yet")

        cleared = UnitStore.clear_all(db)
        CycleMetadataStore.write(db, cycle_count=0, recorded_period=period)
        return cleared

    # ============ Helpers ============

    @staticmethod
    def _current_state(
        db: Session,
        outcome: ReconcileOutcome,
        period: str,
        **extra
    ) -> ReconcileResult:
        """Re-read metadata and units after a write (or a lost race)"""
        meta = CycleMetadataStore.read(db)
        try:
            units = UnitStore.list_units(db)
        except StoreUnavailable as e:
            db.rollback()
            logger.warning(f"Units unavailable after {outcome.value}: {e}")
            units = None

        return ReconcileResult(
            outcome=outcome,
            period=period,
            cycle_count=meta.cycle_count if meta else 0,
            recorded_period=meta.recorded_period if meta else period,
            units=units,
            **extra
        )
