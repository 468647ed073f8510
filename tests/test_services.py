"""
Tests for the pure services and the change notifier
"""
from types import SimpleNamespace

import pytest

from models import Unit
from core.change_notifier import ChangeEvent, ChangeNotifier, RELATION_UNITS
from core.exceptions import ClaimValidationError
from services.board_service import (
    BoardState,
    claimed_count,
    get_board_state,
    progress_percent,
)
from services.history_service import group_history
from services.naming_service import normalize_claimant_name, archived_name


def board(claimed):
    return [
        Unit(unit_index=i, claimant_name="Ali" if i <= claimed else None)
        for i in range(1, 31)
    ]


class TestBoardService:

    @pytest.mark.parametrize("claimed,state", [
        (0, BoardState.IN_PROGRESS),
        (29, BoardState.IN_PROGRESS),
        (30, BoardState.COMPLETE),
    ])
    def test_state_derived_from_count(self, claimed, state):
        units = board(claimed)
        assert claimed_count(units) == claimed
        assert get_board_state(units) == state

    def test_progress(self):
        assert progress_percent(0) == 0.0
        assert progress_percent(15) == 50.0
        assert progress_percent(30) == 100.0


class TestNamingService:

    def test_whitespace_collapsed(self):
        assert normalize_claimant_name("  Ali \t Khan ") == "Ali Khan"

    def test_blank_rejected(self):
        with pytest.raises(ClaimValidationError):
            normalize_claimant_name(" ")

    def test_placeholder(self):
        assert archived_name(None) == "Anonymous"
        assert archived_name("") == "Anonymous"
        assert archived_name("Ali") == "Ali"


class TestHistoryGrouping:

    def entry(self, cycle, index, period, name="Ali"):
        return SimpleNamespace(
            cycle_number=cycle, unit_index=index, period_name=period, claimant_name=name
        )

    def test_grouped_by_period_then_cycle(self):
        entries = [
            self.entry(1, 2, "Rajab"),
            self.entry(1, 1, "Rajab"),
            self.entry(2, 1, "Rajab"),
            self.entry(1, 1, "Sha'ban", "Omar"),
        ]

        grouped = group_history(entries)

        assert [p["period_name"] for p in grouped] == ["Rajab", "Sha'ban"]
        rajab = grouped[0]
        assert rajab["cycle_count"] == 2
        assert [c["cycle_number"] for c in rajab["cycles"]] == [2, 1]
        assert [e["unit_index"] for e in rajab["cycles"][1]["entries"]] == [1, 2]
        assert grouped[1]["cycles"][0]["entries"][0]["claimant_name"] == "Omar"

    def test_empty(self):
        assert group_history([]) == []


class TestChangeNotifier:

    def test_subscribe_publish_unsubscribe(self):
        channel = ChangeNotifier()
        received = []
        handle = channel.subscribe(received.append)

        channel.publish(ChangeEvent(RELATION_UNITS, (1, 2), "claim"))
        channel.unsubscribe(handle)
        channel.publish(ChangeEvent(RELATION_UNITS, (3,), "claim"))

        assert received == [ChangeEvent(RELATION_UNITS, (1, 2), "claim")]
        assert channel.subscriber_count() == 0

    def test_failing_subscriber_does_not_block_others(self):
        channel = ChangeNotifier()
        received = []

        def broken(event):
            raise RuntimeError("socket closed")

        channel.subscribe(broken)
        channel.subscribe(received.append)

        channel.publish(ChangeEvent(RELATION_UNITS))

        assert len(received) == 1

    def test_handles_are_unique(self):
        channel = ChangeNotifier()
        assert channel.subscribe(print) != channel.subscribe(print)

    def test_event_payload(self):
        assert ChangeEvent(RELATION_UNITS, (4,), "claim").to_dict() == {
            "type": "change",
            "relation": "units",
            "indices": [4],
            "reason": "claim",
        }
