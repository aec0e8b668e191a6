"""Session Graph Manager - session input and derived facts persisted in Neo4j.

Architecture:
    (UserInput)-[:HAS_DISEASE]->(Disease)
        |      +-[:HAS_LOCATION]->(Location)
        |
        +-[:ASSESSED {priority, isAffordable, isControlMethodSuitable, isSuitable}]->(Treatment)
        +-[:ASSESSED {isSpecific}]->(Symptom)
        +-[:INFERRED_SOURCE {label}]->(Disease)

Derived facts hang off the UserInput node, never off the shared background
nodes, so two sessions can be classified at the same time without touching each
other. All derived writes use MERGE; repeating a batch changes nothing.
"""

import logging
import time
from collections import defaultdict
from typing import Optional

from ..errors import StoreRejected
from .state import (
    HAS_PRIMARY_SOURCE,
    SYMPTOM,
    TREATMENT,
    ControlMethod,
    Disease,
    EnvironmentalProfile,
    FactBatch,
    GraphSnapshot,
    Location,
    Session,
    Symptom,
    Treatment,
    to_decimal,
)

logger = logging.getLogger(__name__)

# Entity kinds whose single-valued facts live on an ASSESSED relationship
_ASSESSED_LABELS = {TREATMENT: "Treatment", SYMPTOM: "Symptom"}


def _as_list(value) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [v for v in value if v is not None]
    return [value]


class SessionGraphManager:
    """Manages UserInput nodes and their derived facts.

    Each write method is one transaction through the connection's write().
    """

    def __init__(self, db_connection):
        """Initialize with an existing Neo4jConnection instance."""
        self.db = db_connection

    # =========================================================================
    # SESSION LIFECYCLE
    # =========================================================================

    def create_session(self, session: Session) -> None:
        """Create the UserInput node and its two links in a single statement."""
        rows = self.db.write([("""
            MATCH (d:Disease {id: $disease_id})
            MATCH (l:Location {id: $location_id})
            CREATE (u:UserInput {id: $id})
            SET u += $properties
            CREATE (u)-[:HAS_DISEASE]->(d)
            CREATE (u)-[:HAS_LOCATION]->(l)
            RETURN u.id AS id
        """, {
            "id": session.id,
            "disease_id": session.disease_id,
            "location_id": session.location_id,
            "properties": session.to_properties(),
        })])
        if not rows:
            raise StoreRejected(
                f"Background graph has no Disease '{session.disease_id}' "
                f"or Location '{session.location_id}'"
            )

    def get_session(self, session_id: str) -> Optional[Session]:
        result = self.db.query("""
            MATCH (u:UserInput {id: $session_id})-[:HAS_DISEASE]->(d:Disease)
            MATCH (u)-[:HAS_LOCATION]->(l:Location)
            RETURN u.id AS id, d.id AS disease_id, l.id AS location_id,
                   u.budget AS budget, u.control_method_input AS control_method_input,
                   u.created_at AS created_at
        """, {"session_id": session_id})
        if not result:
            return None
        row = result[0]
        return Session(
            id=row["id"],
            disease_id=row["disease_id"],
            location_id=row["location_id"],
            budget=to_decimal(row["budget"]),
            control_method_input=row.get("control_method_input") or "",
            created_at=row.get("created_at") or 0,
        )

    def purge_session(self, session_id: str) -> None:
        """Delete the UserInput node together with every derived fact hanging off it."""
        self.db.write([("""
            MATCH (u:UserInput {id: $session_id})
            DETACH DELETE u
        """, {"session_id": session_id})])
        logger.info(f"Purged session {session_id}")

    def cleanup_stale_sessions(self, max_age_ms: int = 7200000) -> int:
        """Remove sessions older than max_age_ms (default 2 hours)."""
        cutoff = int(time.time() * 1000) - max_age_ms
        result = self.db.write([("""
            MATCH (u:UserInput)
            WHERE u.created_at < $cutoff
            WITH u, u.id AS sid
            DETACH DELETE u
            RETURN count(DISTINCT sid) AS cleaned
        """, {"cutoff": cutoff})])
        cleaned = result[0]["cleaned"] if result else 0
        if cleaned > 0:
            logger.info(f"Cleaned {cleaned} stale session(s) from graph")
        return cleaned

    # =========================================================================
    # SNAPSHOT
    # =========================================================================

    def load_snapshot(self, session: Session) -> GraphSnapshot:
        """Read everything the stages need for this session in two queries."""
        result = self.db.query("""
            MATCH (u:UserInput {id: $session_id})-[:HAS_DISEASE]->(d:Disease)
            MATCH (u)-[:HAS_LOCATION]->(l:Location)
            OPTIONAL MATCH (d)-[:HAS_CONTROL_METHOD]->(cm:ControlMethod)
            OPTIONAL MATCH (cm)-[:HAS_TREATMENT]->(t:Treatment)
            WITH d, l, cm, collect(DISTINCT t.id) AS treatment_ids
            WITH d, l, collect(CASE WHEN cm IS NULL THEN NULL
                                    ELSE cm {.*, treatment_ids: treatment_ids} END) AS control_methods
            OPTIONAL MATCH (d)-[:HAS_SYMPTOM]->(s:Symptom)
            OPTIONAL MATCH (s)-[:AFFECTED_BY]->(e:EnvironmentalProfile)
            RETURN d {.*} AS disease,
                   l {.*} AS location,
                   control_methods,
                   collect(DISTINCT CASE WHEN s IS NULL THEN NULL
                                         ELSE s {.*, profile: properties(e)} END) AS symptoms
        """, {"session_id": session.id})
        if not result:
            raise StoreRejected(f"Unknown session: {session.id}")
        row = result[0]

        treatments = self.db.query("""
            MATCH (t:Treatment)
            RETURN t.id AS id, t.name AS name, toString(t.cost) AS cost
        """)

        disease_props = row["disease"] or {}
        location_props = row["location"] or {}
        control_methods = [
            ControlMethod(
                id=cm["id"],
                method=cm.get("method") or "",
                treatment_ids=_as_list(cm.get("treatment_ids")),
                treatment_status=cm.get("treatment_status") or "",
                product_name=cm.get("product_name") or "",
                description=cm.get("description"),
                active_ingredient=cm.get("active_ingredient"),
            )
            for cm in row["control_methods"] or []
        ]
        symptoms = [
            Symptom(
                id=s["id"],
                description=s.get("description") or "",
                affected_parts=_as_list(s.get("affected_parts")),
                profile=EnvironmentalProfile.from_properties(s.get("profile")),
            )
            for s in row["symptoms"] or []
        ]
        return GraphSnapshot(
            session=session,
            disease=Disease(
                id=disease_props.get("id", session.disease_id),
                name=disease_props.get("name", ""),
                overall_symptoms=disease_props.get("overall_symptoms"),
                symptom_ids=[s.id for s in symptoms],
                control_method_ids=[cm.id for cm in control_methods],
            ),
            location=Location(
                id=location_props.get("id", session.location_id),
                name=location_props.get("name", ""),
                profile=EnvironmentalProfile.from_properties(location_props),
            ),
            treatments={
                t["id"]: Treatment(id=t["id"], name=t.get("name") or "", cost=to_decimal(t.get("cost")))
                for t in treatments
            },
            control_methods=control_methods,
            symptoms=symptoms,
        )

    # =========================================================================
    # DERIVED FACTS
    # =========================================================================

    def retract_derived(self, session_id: str) -> None:
        """Drop every derived fact of one session. A no-op when there are none."""
        self.db.write([("""
            MATCH (u:UserInput {id: $session_id})-[r:ASSESSED|INFERRED_SOURCE]->()
            DELETE r
        """, {"session_id": session_id})])

    def retract_all_derived(self) -> None:
        """Drop derived facts of every session (used when reseeding the background graph)."""
        self.db.write([("""
            MATCH (:UserInput)-[r:ASSESSED|INFERRED_SOURCE]->()
            DELETE r
        """, {})])

    def build_assert_statements(self, session_id: str, batch: FactBatch) -> list[tuple[str, dict]]:
        """Translate a batch into Cypher statements, one per entity kind."""
        assessed: dict[str, dict[str, dict]] = defaultdict(lambda: defaultdict(dict))
        sources: dict[str, list[str]] = defaultdict(list)

        for fact in batch.assertions:
            if fact.attribute == HAS_PRIMARY_SOURCE:
                if fact.value not in sources[fact.entity_id]:
                    sources[fact.entity_id].append(fact.value)
            elif fact.entity_kind in _ASSESSED_LABELS:
                assessed[fact.entity_kind][fact.entity_id][fact.attribute] = fact.value
            else:
                raise StoreRejected(f"Unsupported derived fact: {fact.entity_kind}.{fact.attribute}")

        statements = []
        for kind, by_entity in assessed.items():
            label = _ASSESSED_LABELS[kind]
            statements.append((f"""
                MATCH (u:UserInput {{id: $session_id}})
                UNWIND $rows AS row
                MATCH (n:{label} {{id: row.entity_id}})
                MERGE (u)-[a:ASSESSED]->(n)
                SET a += row.props
            """, {
                "session_id": session_id,
                "rows": [{"entity_id": eid, "props": props} for eid, props in sorted(by_entity.items())],
            }))

        if sources:
            statements.append(("""
                MATCH (u:UserInput {id: $session_id})
                UNWIND $rows AS row
                MATCH (d:Disease {id: row.entity_id})
                MERGE (u)-[:INFERRED_SOURCE {label: row.label}]->(d)
            """, {
                "session_id": session_id,
                "rows": [
                    {"entity_id": eid, "label": label}
                    for eid, labels in sorted(sources.items()) for label in labels
                ],
            }))
        return statements

    def write_facts(self, session_id: str, batch: FactBatch) -> None:
        """Write one stage's assertions in a single transaction."""
        statements = self.build_assert_statements(session_id, batch)
        if statements:
            self.db.write(statements)
