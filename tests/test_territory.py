"""
Tests for territory management.

Covers:
- Block numbering and property positions, with insertion shifts
- Block counters kept in step with property creation, edits and deletion
- Batch assignment and worked marking with partial failures
- Responsibles reset
"""

import uuid
from datetime import date

import pytest

from campaign import territory
from campaign.exceptions import (
    AgentNotFound,
    AreaNotFound,
    BlockNotFound,
    InvalidReference,
    InvalidValue,
    PartialBatchFailure,
)
from campaign.models import Area, Block, Property

pytestmark = pytest.mark.django_db


class TestAreas:
    def test_create_area(self, agent):
        area = territory.create_area("Vila Nova", "https://maps.example.org/vn", agent.pk)
        assert area.responsible == agent

    def test_create_area_with_missing_responsible(self):
        with pytest.raises(AgentNotFound):
            territory.create_area("Vila Nova", "https://maps.example.org/vn", uuid.uuid4())
        assert not Area.objects.exists()

    def test_delete_area_cascades(self, area):
        block = territory.create_block(area.pk)
        territory.create_property(block.pk, "Rua A")
        territory.delete_area(area.pk)
        assert not Block.objects.exists()
        assert not Property.objects.exists()


class TestBlocks:
    def test_numbers_are_appended(self, area):
        first = territory.create_block(area.pk)
        second = territory.create_block(area.pk)
        assert (first.number, second.number) == (1, 2)

    def test_insert_shifts_following_blocks(self, area):
        blocks = [territory.create_block(area.pk) for _ in range(3)]
        inserted = territory.create_block(area.pk, number=2)

        assert inserted.number == 2
        numbers = {b.pk: b.number for b in Block.objects.filter(area=area)}
        assert numbers[blocks[0].pk] == 1
        assert numbers[blocks[1].pk] == 3
        assert numbers[blocks[2].pk] == 4
        assert sorted(numbers.values()) == [1, 2, 3, 4]

    def test_numbering_is_per_area(self, area):
        other = Area.objects.create(name="Sul", map_url="https://maps.example.org/sul")
        territory.create_block(area.pk)
        assert territory.create_block(other.pk).number == 1

    def test_missing_area(self):
        with pytest.raises(AreaNotFound):
            territory.create_block(uuid.uuid4())

    def test_invalid_number(self, area):
        with pytest.raises(InvalidValue):
            territory.create_block(area.pk, number=0)


class TestProperties:
    def test_counters_follow_creation(self, block):
        territory.create_property(block.pk, "Rua A", inhabitants=4, dogs=1)
        territory.create_property(block.pk, "Rua A", property_type="c", cats=2)
        territory.create_property(block.pk, "Rua B", property_type="tb")

        block.refresh_from_db()
        assert block.total_properties == 3
        assert block.residence_count == 1
        assert block.commerce_count == 1
        assert block.vacant_lot_count == 1
        assert block.point_of_interest_count == 0
        assert block.inhabitants == 4
        assert block.dogs == 1
        assert block.cats == 2

    def test_new_property_is_closed(self, block):
        prop = territory.create_property(block.pk, "Rua A", status="visited")
        assert prop.status == "closed"

    def test_insert_shifts_following_properties(self, block):
        first = territory.create_property(block.pk, "Rua A")
        second = territory.create_property(block.pk, "Rua A")
        inserted = territory.create_property(block.pk, "Rua A", position=1)

        first.refresh_from_db()
        second.refresh_from_db()
        assert (inserted.position, first.position, second.position) == (1, 2, 3)

    def test_invalid_fields_write_nothing(self, block):
        with pytest.raises(InvalidValue):
            territory.create_property(block.pk, "Rua A", property_type="castle")
        with pytest.raises(InvalidValue):
            territory.create_property(block.pk, "Rua A", dogs=-1)
        with pytest.raises(InvalidValue):
            territory.create_property(block.pk, "Rua A", block_id=uuid.uuid4())

        block.refresh_from_db()
        assert block.total_properties == 0
        assert not Property.objects.exists()

    def test_missing_block(self):
        with pytest.raises(BlockNotFound):
            territory.create_property(uuid.uuid4(), "Rua A")

    def test_update_moves_counters(self, block):
        prop = territory.create_property(block.pk, "Rua A", inhabitants=3)
        territory.update_property(prop.pk, property_type="pe", inhabitants=5, note="Igreja")

        block.refresh_from_db()
        assert block.residence_count == 0
        assert block.point_of_interest_count == 1
        assert block.inhabitants == 5
        assert block.total_properties == 1

        prop.refresh_from_db()
        assert prop.note == "Igreja"
        assert prop.status == "closed"

    def test_update_status_only_when_given(self, block):
        prop = territory.create_property(block.pk, "Rua A")
        territory.update_property(prop.pk, status="refused")
        prop.refresh_from_db()
        assert prop.status == "refused"

        with pytest.raises(InvalidValue):
            territory.update_property(prop.pk, status="gone")
        with pytest.raises(InvalidValue):
            territory.update_property(prop.pk, position=9)

    def test_delete_property(self, block):
        prop = territory.create_property(block.pk, "Rua A", property_type="out", dogs=2)
        territory.delete_property(prop.pk)

        block.refresh_from_db()
        assert block.total_properties == 0
        assert block.other_count == 0
        assert block.dogs == 0


class TestBatchAssignment:
    def test_one_invalid_among_three_valid(self, area, agent):
        blocks = [territory.create_block(area.pk) for _ in range(3)]
        ids = [str(b.pk) for b in blocks] + ["not-a-block"]

        result = territory.assign_blocks(ids, agent.pk)

        assert {b.pk for b in result.updated} == {b.pk for b in blocks}
        assert len(result.failures) == 1
        failed_id, error = result.failures[0]
        assert failed_id == "not-a-block"
        assert isinstance(error, InvalidReference)
        assert Block.objects.filter(assigned_to=agent).count() == 3

        with pytest.raises(PartialBatchFailure) as exc_info:
            result.raise_for_failures()
        assert str(exc_info.value) == "1 of 4 batch items failed"

    def test_missing_block_is_reported(self, block, agent):
        missing = uuid.uuid4()
        result = territory.assign_blocks([block.pk, missing], agent.pk)

        assert [b.pk for b in result.updated] == [block.pk]
        assert isinstance(result.failures[0][1], BlockNotFound)

    def test_all_valid(self, block, agent):
        result = territory.assign_blocks([block.pk], agent.pk)
        assert result.ok
        assert result.raise_for_failures() is result

    def test_missing_agent_updates_nothing(self, block):
        with pytest.raises(AgentNotFound):
            territory.assign_blocks([block.pk], uuid.uuid4())
        block.refresh_from_db()
        assert block.assigned_to is None

    def test_mark_worked(self, block, agent):
        territory.assign_blocks([block.pk], agent.pk)
        result = territory.mark_blocks_worked([block.pk], agent.pk, when="2024-03-04T16:20:00")

        assert result.ok
        block.refresh_from_db()
        assert block.worked
        assert block.worked_by == agent
        assert block.work_date == date(2024, 3, 4)
        assert block.assigned_to is None
        assert block.assignment_state == "worked"

    def test_reset_responsibles(self, area, agent):
        blocks = [territory.create_block(area.pk) for _ in range(2)]
        territory.create_block(area.pk)
        territory.assign_blocks([b.pk for b in blocks], agent.pk)

        assert territory.reset_responsibles() == 2
        assert not Block.objects.filter(assigned_to__isnull=False).exists()
