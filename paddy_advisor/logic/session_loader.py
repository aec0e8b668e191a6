"""Session Loader: validate a submission and create its UserInput node."""

import logging
import time
import uuid
from decimal import Decimal, InvalidOperation

from ..errors import InvalidBudget, UnknownDisease, UnknownLocation
from .state import Session

logger = logging.getLogger(__name__)


def parse_budget(budget) -> Decimal:
    """Parse a submitted budget into a finite, non-negative Decimal.

    Accepts numbers and numeric strings. Raises InvalidBudget otherwise.
    """
    if budget is None or isinstance(budget, bool):
        raise InvalidBudget(budget)
    try:
        value = Decimal(str(budget).strip())
    except (InvalidOperation, ValueError):
        raise InvalidBudget(budget)
    if not value.is_finite() or value < 0:
        raise InvalidBudget(budget)
    return value


def new_session_id() -> str:
    return f"UserInput_{uuid.uuid4().hex}"


class SessionLoader:
    """Turns a raw submission into a persisted, immutable Session."""

    def __init__(self, config, store):
        self.config = config
        self.store = store

    def build(self, disease: str, budget, location: str, control_method: str = "") -> Session:
        """Validate inputs against the tenant vocabularies; no store access."""
        disease_id = self.config.disease_id(disease)
        if disease_id is None:
            raise UnknownDisease(disease)
        location_id = self.config.location_id(location)
        if location_id is None:
            raise UnknownLocation(location)

        return Session(
            id=new_session_id(),
            disease_id=disease_id,
            location_id=location_id,
            budget=parse_budget(budget),
            control_method_input=control_method or "",
            created_at=int(time.time() * 1000),
        )

    def load(self, disease: str, budget, location: str, control_method: str = "") -> Session:
        """Validate, then assert the session as a single write."""
        session = self.build(disease, budget, location, control_method)
        self.store.create_session(session)
        logger.info(
            f"Created session {session.id} "
            f"(disease={session.disease_id}, location={session.location_id}, budget={session.budget})"
        )
        return session
