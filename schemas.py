"""
Request / response schemas (Pydantic)
"""
from typing import List, Optional

from pydantic import BaseModel, Field

from core.rollover_engine import ReconcileOutcome
from services.board_service import BoardState


# ============ Board ============

class UnitResponse(BaseModel):
    unit_index: int
    claimant_name: Optional[str] = None
    claimed: bool


class BoardResponse(BaseModel):
    period: str
    cycle_count: int
    recorded_period: str
    units: List[UnitResponse]
    claimed_count: int
    total_units: int
    progress: float
    board_state: BoardState
    outcome: ReconcileOutcome
    archived_cycle: Optional[int] = None
    data_available: bool = True


# ============ Claims ============

class ClaimSubmit(BaseModel):
    indices: List[int] = Field(default_factory=list)
    name: str = ""


class ClaimResponse(BaseModel):
    claimant_name: str
    claimed: List[int]
    rejected: List[int]
    board: BoardResponse


# ============ History ============

class HistoryUnitResponse(BaseModel):
    unit_index: int
    claimant_name: str


class HistoryCycleResponse(BaseModel):
    cycle_number: int
    entries: List[HistoryUnitResponse]


class HistoryPeriodResponse(BaseModel):
    period_name: str
    cycle_count: int
    cycles: List[HistoryCycleResponse]


class HistoryResponse(BaseModel):
    periods: List[HistoryPeriodResponse]
    total_entries: int
