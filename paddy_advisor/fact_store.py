"""Fact store contract consumed by the advisory pipeline and the HTTP layer."""

from abc import ABC, abstractmethod
from typing import Optional

from .logic.state import FactBatch, GraphSnapshot, Session

STALE_SESSION_AGE_MS = 7200000  # 2 hours


class FactStore(ABC):
    """Background graph plus session-scoped derived facts.

    Write methods either apply completely or raise; a failed write must be
    treated as not applied.
    """

    @abstractmethod
    def verify_connection(self) -> bool:
        ...

    def warmup(self):
        """Called once on server start."""

    def close(self):
        """Release backend resources."""

    # --- sessions -----------------------------------------------------------

    @abstractmethod
    def create_session(self, session: Session) -> None:
        """Assert a new UserInput node with its disease/location links in one write."""
        ...

    @abstractmethod
    def get_session(self, session_id: str) -> Optional[Session]:
        ...

    @abstractmethod
    def purge_session(self, session_id: str) -> None:
        ...

    @abstractmethod
    def cleanup_stale_sessions(self, max_age_ms: int = STALE_SESSION_AGE_MS) -> int:
        ...

    # --- derived facts ------------------------------------------------------

    @abstractmethod
    def load_snapshot(self, session: Session) -> GraphSnapshot:
        ...

    @abstractmethod
    def retract_derived(self, session_id: str) -> None:
        ...

    @abstractmethod
    def retract_all_derived(self) -> None:
        ...

    @abstractmethod
    def write_facts(self, session_id: str, batch: FactBatch) -> None:
        ...

    def apply_batch(self, session_id: str, batch: FactBatch) -> None:
        """Apply one stage's output: optional session-wide retraction, then assertions."""
        if batch.retract_session:
            self.retract_derived(session_id)
        if batch.assertions:
            self.write_facts(session_id, batch)

    # --- read projections ---------------------------------------------------

    @abstractmethod
    def get_disease_details(self, session_id: str) -> list[dict]:
        ...

    @abstractmethod
    def get_suitable_treatments(self, session_id: str) -> list[dict]:
        ...

    @abstractmethod
    def get_general_treatments(self, session_id: str) -> list[dict]:
        ...

    @abstractmethod
    def get_disease_agent(self, disease: str) -> list[dict]:
        ...

    @abstractmethod
    def get_disease_environment(self, disease: str) -> list[dict]:
        ...

    @abstractmethod
    def get_general_guidelines(self) -> list[dict]:
        ...
