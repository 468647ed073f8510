"""
Claim API Endpoints

Responsibilities:
1. A participant claims one or more Juz under a name
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import ClaimSubmit, ClaimResponse
from api.board import build_board_response
from core.claim_manager import ClaimManager
from core.change_notifier import ChangeNotifier, get_notifier
from core.exceptions import ClaimValidationError, ClaimConflict, TransportError
from services.period_service import PeriodOracle, get_period_oracle

router = APIRouter(prefix="/api", tags=["claims"])
logger = logging.getLogger(__name__)


@router.post("/claims", response_model=ClaimResponse)
def claim_units(
    claim_data: ClaimSubmit,
    db: Session = Depends(get_db),
    oracle: PeriodOracle = Depends(get_period_oracle),
    notifier: ChangeNotifier = Depends(get_notifier)
):
    """
    Claim Juz (participant endpoint)

    Preconditions:
    - at least one Juz selected, every number within 1..30
    - a non-empty name

    Flow:
    1. Validate (422 before any store call)
    2. Conditional bulk claim + re-read
    3. Post-claim reconciliation (the 30th claim archives the Khatam)
    4. Publish change events
    5. 409 if some Juz were taken by someone else in the meantime;
       the client restores its selection and retries

    Returns:
        - claimed / rejected Juz numbers
        - board after reconciliation
    """
    try:
        logger.info(f"Claim request: {claim_data.indices} by {claim_data.name!r}")

        period = oracle.current_period_name()
        result = ClaimManager.claim(db, claim_data.indices, claim_data.name, period)
        notifier.publish_all(result.events)

        result.raise_for_conflict()

        return ClaimResponse(
            claimant_name=result.claimant_name,
            claimed=result.claimed,
            rejected=result.rejected,
            board=build_board_response(result.reconcile)
        )

    except ClaimValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except ClaimConflict as e:
        raise HTTPException(
            status_code=409,
            detail={"message": str(e), "claimed": e.claimed, "rejected": e.rejected}
        )
    except TransportError as e:
        logger.warning(f"Claim failed, store unavailable: {e}")
        raise HTTPException(status_code=503, detail="Store unavailable, please retry")
    except Exception as e:
        logger.error(f"Failed to claim units: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")
