"""
Board API Endpoints

Responsibilities:
1. Current board (every read runs a reconciliation pass)
2. History browser
3. Administrative reset
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from models import TOTAL_UNITS
from schemas import BoardResponse, UnitResponse, HistoryResponse
from core.rollover_engine import RolloverEngine, ReconcileResult
from core.change_notifier import ChangeNotifier, get_notifier
from core.exceptions import TransportError, MetadataNotInitialized
from services.board_service import progress_percent
from services.history_service import get_history
from services.period_service import PeriodOracle, get_period_oracle

router = APIRouter(prefix="/api", tags=["board"])
logger = logging.getLogger(__name__)


def build_board_response(result: ReconcileResult) -> BoardResponse:
    units = result.units or []
    count = result.claimed_count
    return BoardResponse(
        period=result.period,
        cycle_count=result.cycle_count,
        recorded_period=result.recorded_period,
        units=[
            UnitResponse(
                unit_index=unit.unit_index,
                claimant_name=unit.claimant_name,
                claimed=unit.claimed
            )
            for unit in units
        ],
        claimed_count=count,
        total_units=TOTAL_UNITS,
        progress=progress_percent(count),
        board_state=result.board_state,
        outcome=result.outcome,
        archived_cycle=result.archived_cycle,
        data_available=result.units is not None
    )


@router.get("/board", response_model=BoardResponse)
def get_board(
    db: Session = Depends(get_db),
    oracle: PeriodOracle = Depends(get_period_oracle),
    notifier: ChangeNotifier = Depends(get_notifier)
):
    """
    Current board state

    Used on page load and whenever a client receives a change event.
    Reconciles first, so a period change or a completed board is handled
    before the state is returned.

    Returns:
        - period / cycle_count / recorded_period
        - units: the 30 units with claimants
        - claimed_count, progress, board_state
        - outcome: what this pass did (NOOP, PERIOD_RESET, ROLLED_OVER, ...)
    """
    try:
        period = oracle.current_period_name()
        result = RolloverEngine.reconcile(db, period)
        notifier.publish_all(result.events)
        return build_board_response(result)

    except TransportError as e:
        logger.warning(f"Board unavailable: {e}")
        raise HTTPException(status_code=503, detail="Store unavailable, please refresh")
    except Exception as e:
        logger.error(f"Failed to load board: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/history", response_model=HistoryResponse)
def get_history_endpoint(db: Session = Depends(get_db)):
    """
    Archived Khatams, grouped by month then by Khatam number (newest first)
    """
    try:
        periods = get_history(db)
        total = sum(
            len(cycle["entries"]) for period in periods for cycle in period["cycles"]
        )
        return HistoryResponse(periods=periods, total_entries=total)

    except TransportError as e:
        logger.warning(f"History unavailable: {e}")
        raise HTTPException(status_code=503, detail="Store unavailable, please refresh")
    except Exception as e:
        logger.error(f"Failed to load history: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/admin/reset", response_model=BoardResponse)
def admin_reset(
    db: Session = Depends(get_db),
    oracle: PeriodOracle = Depends(get_period_oracle),
    notifier: ChangeNotifier = Depends(get_notifier)
):
    """
    Administrative reset

    Clears every claim and restarts the Khatam counter at 0 under the
    current period. History is kept.
    """
    try:
        period = oracle.current_period_name()
        result = RolloverEngine.administrative_reset(db, period)
        notifier.publish_all(result.events)
        return build_board_response(result)

    except MetadataNotInitialized as e:
        raise HTTPException(status_code=409, detail=str(e))
    except TransportError as e:
        logger.warning(f"Reset failed, store unavailable: {e}")
        raise HTTPException(status_code=503, detail="Store unavailable, please retry")
    except Exception as e:
        logger.error(f"Failed to reset board: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")
