"""
Board service: derive the board state from the units

There is no persisted status column. The state is recomputed from the claim
count every time a decision is made:
- 0..29 claimed: IN_PROGRESS
- 30 claimed: COMPLETE (a completion rollover is due)
"""
import enum
from typing import Iterable

from models import Unit, TOTAL_UNITS


class BoardState(str, enum.Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETE = "COMPLETE"


def claimed_count(units: Iterable[Unit]) -> int:
    """Number of claimed units (always within 0..30)"""
    return sum(1 for unit in units if unit.claimed)


def get_board_state(units: Iterable[Unit]) -> BoardState:
    """
    Derive the board state from the claim count

    Example:
        get_board_state(units_with_12_claims) -> BoardState.IN_PROGRESS
        get_board_state(all_30_claimed) -> BoardState.COMPLETE
    """
    if claimed_count(units) >= TOTAL_UNITS:
        return BoardState.COMPLETE
    return BoardState.IN_PROGRESS


def is_complete(units: Iterable[Unit]) -> bool:
    return get_board_state(units) == BoardState.COMPLETE


def progress_percent(count: int) -> float:
    """Progress bar value, e.g. 15 claimed -> 50.0"""
    return round(count * 100.0 / TOTAL_UNITS, 1)
