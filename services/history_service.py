"""
History browser service.

Groups the archived entries the way the history page shows them: by period
(in the order periods first appear in the archive), then by cycle number
(newest first), with units in index order inside each cycle.
"""
from typing import List, Dict, Any

from sqlalchemy.orm import Session

from core.history_store import HistoryStore


def group_history(entries) -> List[Dict[str, Any]]:
    """
    Build the nested period -> cycle -> units structure.

    A cycle archived twice shows up as one cycle with duplicate unit rows,
    not merged.
    """
    periods: Dict[str, Dict[int, List[Any]]] = {}

    for entry in entries:
        cycles = periods.setdefault(entry.period_name, {})
        cycles.setdefault(entry.cycle_number, []).append(entry)

    grouped: List[Dict[str, Any]] = []
    for period_name, cycles in periods.items():
        grouped.append({
            "period_name": period_name,
            "cycle_count": len(cycles),
            "cycles": [
                {
                    "cycle_number": cycle_number,
                    "entries": [
                        {"unit_index": e.unit_index, "claimant_name": e.claimant_name}
                        for e in sorted(cycles[cycle_number], key=lambda e: e.unit_index)
                    ],
                }
                for cycle_number in sorted(cycles, reverse=True)
            ],
        })

    return grouped


def get_history(db: Session) -> List[Dict[str, Any]]:
    """Return the full archive grouped for the history browser."""
    return group_history(HistoryStore.list_all(db))
