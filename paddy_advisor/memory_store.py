"""In-process FactStore over a KnowledgeGraph.

Used when FACT_STORE_BACKEND=memory (local runs without Neo4j) and by the API
tests. Projections return the same keys as the Cypher projections in
database.py.
"""

import logging
import threading
import time
from dataclasses import replace
from typing import Optional

from .errors import StoreRejected
from .fact_store import STALE_SESSION_AGE_MS, FactStore
from .logic.state import (
    DISEASE,
    HAS_PRIMARY_SOURCE,
    IS_AFFORDABLE,
    IS_CONTROL_METHOD_SUITABLE,
    IS_SPECIFIC,
    IS_SUITABLE,
    PRIORITY,
    SYMPTOM,
    TREATMENT,
    DerivedFact,
    DerivedState,
    FactBatch,
    GraphSnapshot,
    Session,
)
from .seed.paddy_graph import KnowledgeGraph, build_knowledge_graph

logger = logging.getLogger(__name__)


class InMemoryFactStore(FactStore):
    def __init__(self, graph: Optional[KnowledgeGraph] = None):
        self.graph = graph or build_knowledge_graph()
        self._sessions: dict[str, Session] = {}
        self._derived: dict[str, DerivedState] = {}
        self._lock = threading.Lock()

    def verify_connection(self) -> bool:
        return True

    def warmup(self):
        logger.info(
            f"In-memory fact store ready: {len(self.graph.diseases)} diseases, "
            f"{len(self.graph.locations)} locations, {len(self.graph.treatments)} treatments"
        )

    # =========================================================================
    # SESSIONS
    # =========================================================================

    def create_session(self, session: Session) -> None:
        if session.disease_id not in self.graph.diseases or session.location_id not in self.graph.locations:
            raise StoreRejected(
                f"Background graph has no Disease '{session.disease_id}' "
                f"or Location '{session.location_id}'"
            )
        with self._lock:
            if session.id in self._sessions:
                raise StoreRejected(f"Session already exists: {session.id}")
            self._sessions[session.id] = session
            self._derived[session.id] = DerivedState()

    def get_session(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def purge_session(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)
            self._derived.pop(session_id, None)
        logger.info(f"Purged session {session_id}")

    def cleanup_stale_sessions(self, max_age_ms: int = STALE_SESSION_AGE_MS) -> int:
        cutoff = int(time.time() * 1000) - max_age_ms
        with self._lock:
            stale = [sid for sid, s in self._sessions.items() if s.created_at < cutoff]
            for sid in stale:
                del self._sessions[sid]
                self._derived.pop(sid, None)
        if stale:
            logger.info(f"Cleaned {len(stale)} stale session(s) from memory")
        return len(stale)

    # =========================================================================
    # SNAPSHOT & DERIVED FACTS
    # =========================================================================

    def _require_session(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise StoreRejected(f"Unknown session: {session_id}")
        return session

    def load_snapshot(self, session: Session) -> GraphSnapshot:
        self._require_session(session.id)
        disease = self.graph.diseases[session.disease_id]
        return GraphSnapshot(
            session=session,
            disease=replace(disease, symptom_ids=list(disease.symptom_ids),
                            control_method_ids=list(disease.control_method_ids)),
            location=self.graph.locations[session.location_id],
            treatments=dict(self.graph.treatments),
            control_methods=[self.graph.control_methods[cid] for cid in disease.control_method_ids],
            symptoms=[self.graph.symptoms[sid] for sid in disease.symptom_ids],
        )

    def retract_derived(self, session_id: str) -> None:
        with self._lock:
            if session_id in self._derived:
                self._derived[session_id] = DerivedState()

    def retract_all_derived(self) -> None:
        with self._lock:
            for session_id in self._derived:
                self._derived[session_id] = DerivedState()

    def write_facts(self, session_id: str, batch: FactBatch) -> None:
        """Same semantics as the graph: relationship properties are overwritten,
        primary-source labels accumulate."""
        for fact in batch.assertions:
            if fact.attribute != HAS_PRIMARY_SOURCE and fact.entity_kind not in (TREATMENT, SYMPTOM):
                raise StoreRejected(f"Unsupported derived fact: {fact.entity_kind}.{fact.attribute}")
        with self._lock:
            self._require_session(session_id)
            state = self._derived[session_id]
            for fact in batch.assertions:
                if fact.attribute != HAS_PRIMARY_SOURCE:
                    state.facts = {
                        f for f in state.facts
                        if (f.entity_kind, f.entity_id, f.attribute)
                        != (fact.entity_kind, fact.entity_id, fact.attribute)
                    }
                state.facts.add(DerivedFact(fact.entity_kind, fact.entity_id, fact.attribute, fact.value))

    def derived_state(self, session_id: str) -> DerivedState:
        """Copy of one session's derived facts (for inspection)."""
        with self._lock:
            return DerivedState(self._derived.get(session_id, DerivedState()).facts)

    # =========================================================================
    # READ PROJECTIONS
    # =========================================================================

    def _guideline_lists(self, treatment) -> dict:
        return {
            "safety_measures": list(treatment.safety_measures),
            "instructions": list(treatment.instructions),
            "application_frequencies": list(treatment.application_frequency),
        }

    def _suitable_for_status(self, session_id: str, status: str):
        session = self._sessions.get(session_id)
        if session is None:
            return
        derived = self.derived_state(session_id)
        disease = self.graph.diseases[session.disease_id]
        for cm_id in disease.control_method_ids:
            cm = self.graph.control_methods[cm_id]
            if cm.treatment_status != status:
                continue
            for t_id in cm.treatment_ids:
                if derived.value(TREATMENT, t_id, IS_CONTROL_METHOD_SUITABLE) is True:
                    yield cm, self.graph.treatments[t_id], derived

    def get_disease_details(self, session_id: str) -> list[dict]:
        session = self._sessions.get(session_id)
        if session is None:
            return []
        derived = self.derived_state(session_id)
        disease = self.graph.diseases[session.disease_id]
        symptoms = [
            self.graph.symptoms[sid] for sid in sorted(disease.symptom_ids)
            if derived.value(SYMPTOM, sid, IS_SPECIFIC) is True
        ]
        return [{
            "disease": disease.id,
            "disease_name": disease.name,
            "overall_symptoms": disease.overall_symptoms,
            "primary_sources": derived.values(DISEASE, disease.id, HAS_PRIMARY_SOURCE),
            "symptoms": [
                {"symptom": s.id, "description": s.description, "affected_parts": list(s.affected_parts)}
                for s in symptoms
            ],
        }]

    def get_suitable_treatments(self, session_id: str) -> list[dict]:
        rows = []
        for cm, t, derived in self._suitable_for_status(session_id, "R"):
            rows.append({
                "control_method": cm.id,
                "product_name": cm.product_name,
                "treatment": t.id,
                "effectiveness": t.effectiveness,
                "environment_impact": t.environment_impact,
                "impact": t.impact,
                "condition": t.condition,
                "priority": derived.value(TREATMENT, t.id, PRIORITY),
                "is_affordable": derived.value(TREATMENT, t.id, IS_AFFORDABLE) is True,
                "is_suitable": derived.value(TREATMENT, t.id, IS_SUITABLE) is True,
                **self._guideline_lists(t),
            })
        return sorted(rows, key=lambda r: (r["control_method"], r["treatment"]))

    def get_general_treatments(self, session_id: str) -> list[dict]:
        rows = []
        for cm, t, _ in self._suitable_for_status(session_id, "P"):
            if t.effectiveness is None:
                continue
            rows.append({
                "treatment": t.id,
                "control_method_name": cm.product_name,
                "method_description": cm.description,
                "active_ingredient": cm.active_ingredient,
                "effectiveness": t.effectiveness,
                "environment_impact": t.environment_impact or "No environment impact",
                "impact": t.impact or "No impact",
                "condition": t.condition or "No condition",
                **self._guideline_lists(t),
            })
        return sorted(rows, key=lambda r: r["treatment"])

    def get_disease_agent(self, disease: str) -> list[dict]:
        rows = []
        for d in self.graph.diseases.values():
            if d.name.lower() == disease.lower() and d.agent_scientific_name:
                row = {"scientific_name": d.agent_scientific_name, "type": d.agent_type}
                if row not in rows:
                    rows.append(row)
        return rows

    def get_disease_environment(self, disease: str) -> list[dict]:
        return [
            {
                "temperature": d.environment.get("temperature"),
                "humidity": d.environment.get("humidity"),
                "soil_moisture": d.environment.get("soil_moisture"),
                "rainfall_pattern": d.environment.get("rainfall_pattern"),
            }
            for d in self.graph.diseases.values()
            if d.name == disease and d.environment
        ]

    def get_general_guidelines(self) -> list[dict]:
        return [
            {"guideline_name": g.id, "description": g.description, "guideline": g.guideline}
            for g in sorted(self.graph.guidelines, key=lambda g: g.id)
        ]
