"""Tests for the property status and block assignment rules."""

from datetime import date

import pytest

from campaign import machines
from campaign.exceptions import AlreadyVisited, InvalidStatusTransition, InvalidVisitDetail
from campaign.models import Block


class TestStatusAfterVisit:
    @pytest.mark.parametrize("outcome", ["closed", "visited", "refused"])
    def test_closed_property_accepts_any_outcome(self, outcome):
        assert machines.status_after_visit("closed", outcome) == outcome

    @pytest.mark.parametrize("outcome", ["visited", "refused"])
    def test_refused_property_can_be_visited_again(self, outcome):
        assert machines.status_after_visit("refused", outcome) == outcome

    def test_refused_property_cannot_go_back_to_closed(self):
        with pytest.raises(InvalidStatusTransition) as exc_info:
            machines.status_after_visit("refused", "closed")
        assert exc_info.value.context == {"current": "refused", "outcome": "closed"}

    @pytest.mark.parametrize("outcome", ["closed", "visited", "refused"])
    def test_visited_property_is_terminal(self, outcome):
        with pytest.raises(AlreadyVisited):
            machines.status_after_visit("visited", outcome)

    def test_unknown_outcome(self):
        with pytest.raises(InvalidVisitDetail):
            machines.status_after_visit("closed", "abandoned")

    def test_only_visited_is_resettable(self):
        assert machines.RESETTABLE_STATUSES == ("visited",)


class TestBlockFields:
    def test_worked_fields_clear_assignment(self):
        fields = machines.worked_fields("agent-id", date(2024, 3, 4))
        assert fields == {
            "assigned_to_id": None,
            "worked_by_id": "agent-id",
            "work_date": date(2024, 3, 4),
            "worked": True,
        }

    def test_block_state(self):
        block = Block(number=1)
        assert machines.block_state(block) == ("unassigned", None, None)

        block.assigned_to_id = "a1"
        assert machines.block_state(block) == ("assigned", "a1", None)

        block.worked = True
        block.worked_by_id = "a2"
        block.work_date = date(2024, 3, 4)
        assert machines.block_state(block) == ("worked", "a2", date(2024, 3, 4))
