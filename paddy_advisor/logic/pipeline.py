"""Pipeline Orchestrator: one submission -> session -> ordered derived-fact stages.

    SessionLoader -> reset -> budget_tiers -> control_method_suitability
                  -> primary_source -> symptom_specificity

The background snapshot is read once. Each stage returns a FactBatch; the batch is
written to the fact store before it is folded into the snapshot, so no stage ever
reads a partially-applied predecessor. Writes of completed stages are not rolled
back when a later stage fails, and nothing is retried.
"""

import logging
import time
from dataclasses import dataclass, field
from functools import partial

from ..errors import AdvisorError
from .derivation import (
    classify_budget_tiers,
    match_control_methods,
    match_specific_symptoms,
    reset_derived_facts,
)
from .primary_source import determine_primary_sources
from .session_loader import SessionLoader
from .state import Session

logger = logging.getLogger(__name__)


@dataclass
class StageResult:
    name: str
    facts: int
    elapsed_ms: float


@dataclass
class PipelineReport:
    session_id: str
    stages: list[StageResult] = field(default_factory=list)

    @property
    def total_facts(self) -> int:
        return sum(s.facts for s in self.stages)

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "stages": [
                {"name": s.name, "facts": s.facts, "elapsed_ms": round(s.elapsed_ms, 2)}
                for s in self.stages
            ],
            "total_facts": self.total_facts,
        }


def build_stages(config) -> list[tuple]:
    """The fixed stage order, bound to the tenant's thresholds and rule table."""
    tiers = config.budget_tiers
    return [
        ("reset", reset_derived_facts),
        ("budget_tiers", partial(
            classify_budget_tiers,
            medium_multiplier=tiers.medium_multiplier,
            low_multiplier=tiers.low_multiplier,
        )),
        ("control_method_suitability", match_control_methods),
        ("primary_source", partial(determine_primary_sources, rules=config.primary_source_rules)),
        ("symptom_specificity", match_specific_symptoms),
    ]


class AdvisoryPipeline:
    """Runs the derived-fact stages for one session at a time against a fact store."""

    def __init__(self, store, config):
        self.store = store
        self.config = config
        self.loader = SessionLoader(config, store)
        self.stages = build_stages(config)

    def submit(self, disease: str, budget, location: str, control_method: str = "") -> PipelineReport:
        """Create a session from raw input and derive its facts.

        Input errors abort before anything is written.
        """
        session = self.loader.load(disease, budget, location, control_method)
        return self.run(session)

    def run(self, session: Session) -> PipelineReport:
        report = PipelineReport(session_id=session.id)
        snapshot = self.store.load_snapshot(session)

        for name, stage in self.stages:
            t = time.time()
            batch = stage(session, snapshot)
            try:
                self.store.apply_batch(session.id, batch)
            except AdvisorError as e:
                logger.error(f"[PIPELINE] {session.id} stage '{name}' failed: {e}")
                raise
            snapshot.derived.apply(batch)
            elapsed_ms = (time.time() - t) * 1000
            report.stages.append(StageResult(name=name, facts=len(batch), elapsed_ms=elapsed_ms))
            logger.info(f"[PIPELINE] {session.id} {name}: {len(batch)} fact(s) in {elapsed_ms:.1f}ms")

        return report
