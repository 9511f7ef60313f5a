"""Tests for the entity store."""

import uuid

import pytest

from campaign.exceptions import (
    AgentNotFound,
    BlockNotFound,
    InvalidReference,
    NotFound,
)
from campaign.models import Agent, Area, Block, Cycle, Property
from campaign.store import not_found_error, parse_identifier, store

pytestmark = pytest.mark.django_db


class TestParseIdentifier:
    def test_string_and_uuid(self):
        key = uuid.uuid4()
        assert parse_identifier(key) is key
        assert parse_identifier(str(key)) == key

    @pytest.mark.parametrize("value", ["abc", "", None, 42, "1234-5678"])
    def test_malformed(self, value):
        with pytest.raises(InvalidReference) as exc_info:
            parse_identifier(value)
        assert exc_info.value.code == "invalid_reference"

    def test_not_found_error_per_model(self):
        assert not_found_error(Block) is BlockNotFound
        assert not_found_error(Cycle) is NotFound


class TestEntityStore:
    def test_get(self, agent):
        assert store.get(Agent, str(agent.pk)) == agent

    def test_get_missing(self):
        missing = uuid.uuid4()
        with pytest.raises(AgentNotFound) as exc_info:
            store.get(Agent, missing)
        assert exc_info.value.identifier == missing
        assert exc_info.value.code == "not_found"

    def test_get_malformed(self):
        with pytest.raises(InvalidReference):
            store.get(Agent, "not-a-uuid")

    def test_find(self, area):
        Block.objects.create(area=area, number=2)
        Block.objects.create(area=area, number=1)
        numbers = store.find(Block, {"area": area}, order_by=["-number"])
        assert [b.number for b in numbers] == [2, 1]
        assert store.find(Block, {"number": 99}).count() == 0

    def test_update_by_id(self, area):
        updated = store.update_by_id(Area, area.pk, name="Norte")
        assert updated.name == "Norte"

    def test_update_by_id_missing(self):
        with pytest.raises(NotFound):
            store.update_by_id(Area, uuid.uuid4(), name="Norte")

    def test_bulk_update(self, area):
        Block.objects.create(area=area, number=1)
        Block.objects.create(area=area, number=2)
        assert store.bulk_update(Block, {"area": area}, worked=True) == 2
        assert Block.objects.filter(worked=True).count() == 2

    def test_bulk_increment(self, block):
        store.bulk_increment(Block, block.pk, {"total_properties": 2, "dogs": 1, "cats": 0})
        store.bulk_increment(Block, block.pk, {"total_properties": 1, "dogs": -1})
        block.refresh_from_db()
        assert block.total_properties == 3
        assert block.dogs == 0
        assert block.cats == 0

    def test_bulk_increment_missing(self):
        with pytest.raises(BlockNotFound):
            store.bulk_increment(Block, uuid.uuid4(), {"total_properties": 1})
        with pytest.raises(BlockNotFound):
            store.bulk_increment(Block, uuid.uuid4(), {"total_properties": 0})

    def test_delete_by_id_cascades(self, prop):
        store.delete_by_id(Area, prop.block.area_id)
        assert not Block.objects.exists()
        assert not Property.objects.exists()

    def test_delete_many(self, area):
        Block.objects.create(area=area, number=1)
        Block.objects.create(area=area, number=2)
        assert store.delete_many(Block, {"number__gte": 2}) == 1
        assert Block.objects.count() == 1
