"""
Shared fixtures for the campaign test suite.

Records are created straight through the ORM so each test only exercises
the operation it is about.
"""

import itertools

import pytest

from campaign.models import Agent, Area, Block, Property

_documents = itertools.count(1)


def make_agent(name="Agent", role=Agent.Role.AGENT):
    return Agent.objects.create(
        name=name,
        document=f"{next(_documents):011d}",
        role=role,
    )


# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def agent(db):
    """A field agent."""
    return make_agent("Maria Souza")


@pytest.fixture
def other_agent(db):
    """A second field agent."""
    return make_agent("João Lima")


@pytest.fixture
def admin_agent(db):
    """A campaign administrator."""
    return make_agent("Ana Costa", role=Agent.Role.ADMINISTRATOR)


@pytest.fixture
def area(db):
    """An area without blocks."""
    return Area.objects.create(name="Centro", map_url="https://maps.example.org/centro")


@pytest.fixture
def block(area):
    """Block 1 of ``area``."""
    return Block.objects.create(area=area, number=1)


@pytest.fixture
def prop(block):
    """A closed residence at position 1 of ``block``."""
    return Property.objects.create(
        block=block,
        position=1,
        street="Rua das Flores",
        number="10",
        property_type="r",
    )


@pytest.fixture
def make_property(block):
    """Factory for closed properties in ``block`` at the next position."""
    positions = itertools.count(2)

    def factory(target_block=None, property_type="r", **fields):
        return Property.objects.create(
            block=target_block or block,
            position=next(positions),
            street=fields.pop("street", "Rua das Flores"),
            property_type=property_type,
            **fields,
        )

    return factory
