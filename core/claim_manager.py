"""
Claim Manager: a participant claims one or more units

Flow:
1. Validate the selection and the name (no store call on failure)
2. Reconcile, so a claim never lands on a board from an earlier period
3. Bulk conditional update, scoped to rows that are still unclaimed
4. Re-read the units; the local selection is never trusted as ground truth
5. Reconcile again (claiming the last unit triggers the completion rollover)

Two participants racing for the same unit: the storage layer lets exactly
one update through, and the loser's re-read shows the unit taken by the
other name.
"""
from dataclasses import dataclass, field
from typing import Iterable, List
import logging

from sqlalchemy.orm import Session

from models import TOTAL_UNITS
from core.unit_store import UnitStore
from core.rollover_engine import RolloverEngine, ReconcileResult
from core.change_notifier import ChangeEvent, RELATION_UNITS
from core.exceptions import ClaimValidationError, ClaimConflict
from services.naming_service import normalize_claimant_name
from database import transactional

logger = logging.getLogger(__name__)


@dataclass
class ClaimResult:
    claimant_name: str
    claimed: List[int]
    rejected: List[int]
    reconcile: ReconcileResult
    events: List[ChangeEvent] = field(default_factory=list)

    def raise_for_conflict(self) -> None:
        if self.rejected:
            raise ClaimConflict(self.claimed, self.rejected)


class ClaimManager:

    @staticmethod
    def validate_indices(indices: Iterable[int]) -> List[int]:
        """
        Deduplicate and range-check a selection

        Raises:
            ClaimValidationError: empty selection or index outside 1..30
        """
        wanted = sorted(set(indices or []))
        if not wanted:
            raise ClaimValidationError("Please select at least one Juz")

        invalid = [i for i in wanted if not 1 <= i <= TOTAL_UNITS]
        if invalid:
            raise ClaimValidationError(
                f"Juz numbers must be between 1 and {TOTAL_UNITS}, got {invalid}"
            )
        return wanted

    @staticmethod
    def claim(
        db: Session,
        indices: Iterable[int],
        claimant_name: str,
        period: str
    ) -> ClaimResult:
        """
        Reconcile, claim units for a participant, then reconcile again

        Args:
            db: SQLAlchemy Session
            indices: requested unit indices
            claimant_name: raw name as typed
            period: current period name for both reconciliation passes

        Returns:
            ClaimResult; `rejected` lists units someone else already held

        Raises:
            ClaimValidationError: bad selection or name
            StoreUnavailable: the update or the re-read failed
        """
        wanted = ClaimManager.validate_indices(indices)
        name = normalize_claimant_name(claimant_name)

        before = RolloverEngine.reconcile(db, period)

        updated = ClaimManager._apply_claim(db, wanted, name)

        units = {u.unit_index: u.claimant_name for u in UnitStore.list_units(db)}
        claimed = [i for i in wanted if units.get(i) == name]
        rejected = [i for i in wanted if i not in claimed]
        if rejected:
            logger.warning(
                f"Claim by {name!r} partially applied ({updated} rows): "
                f"got {claimed}, already taken {rejected}"
            )

        events = []
        if claimed:
            events.append(ChangeEvent(RELATION_UNITS, tuple(claimed), reason="claim"))

        reconcile = RolloverEngine.reconcile(db, period)

        return ClaimResult(
            claimant_name=name,
            claimed=claimed,
            rejected=rejected,
            reconcile=reconcile,
            events=before.events + events + reconcile.events
        )

    @staticmethod
    @transactional
    def _apply_claim(db: Session, wanted: List[int], name: str) -> int:
        return UnitStore.claim_units(db, wanted, name)
