"""Shared fixtures for the paddy advisor test suite.

Loads the REAL tenant config (tenants/sri_lanka/config.yaml) and the bundled
background graph. Provides mock DB fixtures for Cypher-level tests.
"""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from paddy_advisor.config_loader import get_config
from paddy_advisor.logic.state import (
    ControlMethod,
    Disease,
    EnvironmentalProfile,
    GraphSnapshot,
    Location,
    Session,
    Symptom,
    Treatment,
)
from paddy_advisor.memory_store import InMemoryFactStore


# =============================================================================
# CONFIG FIXTURES
# =============================================================================

@pytest.fixture
def config():
    """Load real DomainConfig from tenant config (not mocked)."""
    return get_config("sri_lanka")


# =============================================================================
# SNAPSHOT FIXTURES
# =============================================================================

KANDY_PROFILE = EnvironmentalProfile(
    humidity="High",
    temperature_range="Optimal",
    soil_moisture="High",
    light_intensity="Moderate",
    rainfall_pattern="VeryHigh",
)


def _build_session(budget="100", control_method="Spray", disease_id="Rice_Blast",
                   location_id="Kandy", session_id="UserInput_test"):
    return Session(
        id=session_id,
        disease_id=disease_id,
        location_id=location_id,
        budget=Decimal(budget),
        control_method_input=control_method,
    )


def _build_snapshot(session=None, costs=None, control_methods=None, symptoms=None,
                    location_profile=KANDY_PROFILE, disease_name="Rice Blast"):
    """Small hand-built snapshot: treatments keyed by id with the given costs."""
    session = session or _build_session()
    costs = costs if costs is not None else {}
    return GraphSnapshot(
        session=session,
        disease=Disease(id=session.disease_id, name=disease_name),
        location=Location(id=session.location_id, name=session.location_id, profile=location_profile),
        treatments={
            tid: Treatment(id=tid, name=tid, cost=None if cost is None else Decimal(cost))
            for tid, cost in costs.items()
        },
        control_methods=list(control_methods or []),
        symptoms=list(symptoms or []),
    )


@pytest.fixture
def make_session():
    """Factory for sessions; keyword overrides on the Rice Blast / Kandy defaults."""
    return _build_session


@pytest.fixture
def make_snapshot():
    """Factory for small hand-built snapshots."""
    return _build_snapshot


@pytest.fixture
def kandy_profile():
    return KANDY_PROFILE


@pytest.fixture
def session():
    return _build_session()


@pytest.fixture
def spray_snapshot(session):
    """Rice Blast at Kandy: one Spray method and one Cultural method."""
    return _build_snapshot(
        session,
        costs={"T_cheap": "95", "T_mid": "115", "T_low": "145", "T_pricey": "160", "T_practice": "20"},
        control_methods=[
            ControlMethod(id="CM_spray", method="Spray", treatment_ids=["T_cheap", "T_mid", "T_pricey"],
                          treatment_status="R"),
            ControlMethod(id="CM_cultural", method="Cultural", treatment_ids=["T_practice"],
                          treatment_status="P"),
        ],
        symptoms=[
            Symptom(id="S_match", profile=KANDY_PROFILE),
            Symptom(id="S_other", profile=EnvironmentalProfile(
                humidity="VeryHigh", temperature_range="Optimal", soil_moisture="High",
                light_intensity="Moderate", rainfall_pattern="VeryHigh",
            )),
        ],
    )


# =============================================================================
# STORE FIXTURES
# =============================================================================

@pytest.fixture
def memory_store():
    """Fresh in-memory fact store seeded with the bundled background graph."""
    return InMemoryFactStore()


@pytest.fixture
def mock_db():
    """Mock Neo4jConnection exposing query()/write() only."""
    db = MagicMock()
    db.query.return_value = []
    db.write.return_value = []
    return db


@pytest.fixture
def mock_driver():
    """Mock Neo4j driver with session and transaction context managers."""
    driver = MagicMock()
    session = MagicMock()
    tx = MagicMock()
    driver.session.return_value.__enter__ = MagicMock(return_value=session)
    driver.session.return_value.__exit__ = MagicMock(return_value=False)
    session.begin_transaction.return_value.__enter__ = MagicMock(return_value=tx)
    session.begin_transaction.return_value.__exit__ = MagicMock(return_value=False)
    return driver, session, tx
