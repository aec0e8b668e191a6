import logging
import time
from contextlib import contextmanager
from typing import Optional

from neo4j import GraphDatabase, Query
from neo4j.exceptions import DriverError, Neo4jError, ServiceUnavailable, SessionExpired

from .config_loader import StoreSettings, get_store_settings
from .errors import AdvisorError, StoreRejected, StoreUnavailable
from .fact_store import STALE_SESSION_AGE_MS, FactStore
from .logic.session_graph import SessionGraphManager
from .logic.state import FactBatch, GraphSnapshot, Session

logger = logging.getLogger(__name__)


@contextmanager
def _store_errors(action: str):
    """Translate driver exceptions into StoreUnavailable / StoreRejected."""
    try:
        yield
    except AdvisorError:
        raise
    except (ServiceUnavailable, SessionExpired) as e:
        logger.error(f"{action} failed, store unreachable: {e}")
        raise StoreUnavailable(f"{action} failed: {e}") from e
    except Neo4jError as e:
        code = e.code or ""
        logger.error(f"{action} failed [{code}]: {e.message}")
        if "TimedOut" in code or "Terminated" in code:
            raise StoreUnavailable(f"{action} timed out: {e.message}") from e
        raise StoreRejected(e.message or str(e), status=code) from e
    except DriverError as e:
        logger.error(f"{action} failed in driver: {e}")
        raise StoreUnavailable(f"{action} failed: {e}") from e


class Neo4jConnection(FactStore):
    def __init__(self, settings: Optional[StoreSettings] = None):
        settings = settings or get_store_settings()
        self.uri = settings.uri
        self.user = settings.user
        self.password = settings.password
        self.database = settings.database
        self.timeout_s = settings.timeout_s
        self.driver = None
        self._session_graph = None

    def connect(self):
        if not self.driver:
            if not self.uri:
                raise StoreUnavailable("NEO4J_URI is not configured")
            self.driver = GraphDatabase.driver(
                self.uri,
                auth=(self.user, self.password),
                max_connection_lifetime=3600,
                connection_acquisition_timeout=self.timeout_s,
                connection_timeout=self.timeout_s,
                keep_alive=True,
            )
        return self.driver

    def warmup(self):
        """Pre-connect and warm up connection pool. Call on server start."""
        t = time.time()
        try:
            self.verify_connection()
            logger.info(f"Neo4j connection warmed up in {time.time() - t:.2f}s")
        except AdvisorError as e:
            logger.warning(f"Neo4j warmup failed: {e}")

    def reconnect(self):
        """Force reconnection by closing existing driver and creating new one."""
        if self.driver:
            try:
                self.driver.close()
            except DriverError as e:
                logger.debug(f"Ignoring error while closing stale driver: {e}")
            self.driver = None
        return self.connect()

    def close(self):
        if self.driver:
            self.driver.close()
            self.driver = None

    def _execute_with_retry(self, query_func, max_retries=2):
        """Execute a read with automatic reconnect-and-retry on stale connections."""
        last_error = None
        for attempt in range(max_retries + 1):
            try:
                return query_func()
            except (ServiceUnavailable, SessionExpired) as e:
                last_error = e
                if attempt < max_retries:
                    logger.warning(f"Neo4j connection lost ({e}), reconnecting (attempt {attempt + 1})")
                    self.reconnect()
                else:
                    raise
        raise last_error

    # =========================================================================
    # PRIMITIVES
    # =========================================================================

    def query(self, cypher: str, params: dict = None) -> list[dict]:
        """Read-only pattern match. Returns one dict per row."""
        def _query():
            driver = self.connect()
            with driver.session(database=self.database) as session:
                result = session.run(Query(cypher, timeout=self.timeout_s), params or {})
                return [record.data() for record in result]

        with _store_errors("Query"):
            return self._execute_with_retry(_query)

    def write(self, statements: list[tuple[str, dict]]) -> list[dict]:
        """Run statements in one transaction. Returns the rows of the last statement.

        Not retried: a failed write is treated as not applied.
        """
        with _store_errors("Update"):
            driver = self.connect()
            with driver.session(database=self.database) as session:
                with session.begin_transaction(timeout=self.timeout_s) as tx:
                    rows = []
                    for cypher, params in statements:
                        rows = [record.data() for record in tx.run(cypher, params or {})]
                    tx.commit()
                    return rows

    def verify_connection(self) -> bool:
        """Verify the connection and return database info"""
        result = self.query("RETURN 1 AS test")
        return bool(result) and result[0]["test"] == 1

    def get_session_graph_manager(self) -> SessionGraphManager:
        if self._session_graph is None:
            self._session_graph = SessionGraphManager(self)
        return self._session_graph

    # =========================================================================
    # SESSIONS & DERIVED FACTS
    # =========================================================================

    def create_session(self, session: Session) -> None:
        self.get_session_graph_manager().create_session(session)

    def get_session(self, session_id: str) -> Optional[Session]:
        return self.get_session_graph_manager().get_session(session_id)

    def purge_session(self, session_id: str) -> None:
        self.get_session_graph_manager().purge_session(session_id)

    def cleanup_stale_sessions(self, max_age_ms: int = STALE_SESSION_AGE_MS) -> int:
        return self.get_session_graph_manager().cleanup_stale_sessions(max_age_ms)

    def load_snapshot(self, session: Session) -> GraphSnapshot:
        return self.get_session_graph_manager().load_snapshot(session)

    def retract_derived(self, session_id: str) -> None:
        self.get_session_graph_manager().retract_derived(session_id)

    def retract_all_derived(self) -> None:
        self.get_session_graph_manager().retract_all_derived()

    def write_facts(self, session_id: str, batch: FactBatch) -> None:
        self.get_session_graph_manager().write_facts(session_id, batch)

    # =========================================================================
    # READ PROJECTIONS
    # =========================================================================

    def get_disease_details(self, session_id: str) -> list[dict]:
        """Disease of a session with its inferred sources and location-specific symptoms."""
        return self.query("""
            MATCH (u:UserInput {id: $session_id})-[:HAS_DISEASE]->(d:Disease)
            OPTIONAL MATCH (u)-[src:INFERRED_SOURCE]->(d)
            WITH u, d, collect(DISTINCT src.label) AS primary_sources
            OPTIONAL MATCH (d)-[:HAS_SYMPTOM]->(s:Symptom)<-[a:ASSESSED]-(u)
            WHERE a.isSpecific = true
            WITH d, primary_sources, s
            ORDER BY s.id
            RETURN d.id AS disease,
                   d.name AS disease_name,
                   d.overall_symptoms AS overall_symptoms,
                   primary_sources,
                   collect(CASE WHEN s IS NULL THEN NULL
                                ELSE {symptom: s.id, description: s.description,
                                      affected_parts: s.affected_parts} END) AS symptoms
        """, {"session_id": session_id})

    def get_suitable_treatments(self, session_id: str) -> list[dict]:
        """Recommended products ("R") whose treatments match the session's control method."""
        return self.query("""
            MATCH (u:UserInput {id: $session_id})-[:HAS_DISEASE]->(d:Disease)
            MATCH (d)-[:HAS_CONTROL_METHOD]->(cm:ControlMethod {treatment_status: 'R'})
                  -[:HAS_TREATMENT]->(t:Treatment)
            MATCH (u)-[a:ASSESSED]->(t)
            WHERE a.isControlMethodSuitable = true
            OPTIONAL MATCH (t)-[:HAS_GUIDELINES]->(g:UserGuideline)
            RETURN cm.id AS control_method,
                   cm.product_name AS product_name,
                   t.id AS treatment,
                   t.effectiveness AS effectiveness,
                   t.environment_impact AS environment_impact,
                   t.impact AS impact,
                   t.condition AS condition,
                   a.priority AS priority,
                   coalesce(a.isAffordable, false) AS is_affordable,
                   coalesce(a.isSuitable, false) AS is_suitable,
                   collect(DISTINCT g.safety_measures) AS safety_measures,
                   collect(DISTINCT g.instruction) AS instructions,
                   collect(DISTINCT g.application_frequency) AS application_frequencies
            ORDER BY control_method, treatment
        """, {"session_id": session_id})

    def get_general_treatments(self, session_id: str) -> list[dict]:
        """General practices ("P") for the session's disease and control method."""
        return self.query("""
            MATCH (u:UserInput {id: $session_id})-[:HAS_DISEASE]->(d:Disease)
            MATCH (d)-[:HAS_CONTROL_METHOD]->(cm:ControlMethod {treatment_status: 'P'})
                  -[:HAS_TREATMENT]->(t:Treatment)
            MATCH (u)-[a:ASSESSED]->(t)
            WHERE a.isControlMethodSuitable = true AND t.effectiveness IS NOT NULL
            OPTIONAL MATCH (t)-[:HAS_GUIDELINES]->(g:UserGuideline)
            RETURN t.id AS treatment,
                   cm.product_name AS control_method_name,
                   cm.description AS method_description,
                   cm.active_ingredient AS active_ingredient,
                   t.effectiveness AS effectiveness,
                   coalesce(t.environment_impact, 'No environment impact') AS environment_impact,
                   coalesce(t.impact, 'No impact') AS impact,
                   coalesce(t.condition, 'No condition') AS condition,
                   collect(DISTINCT g.safety_measures) AS safety_measures,
                   collect(DISTINCT g.instruction) AS instructions,
                   collect(DISTINCT g.application_frequency) AS application_frequencies
            ORDER BY treatment
        """, {"session_id": session_id})

    def get_disease_agent(self, disease: str) -> list[dict]:
        """Causal agent of a disease, name matched ignoring case."""
        return self.query("""
            MATCH (d:Disease)-[:CAUSED_BY]->(a:Agent)
            WHERE toLower(d.name) = toLower($disease)
            RETURN DISTINCT a.scientific_name AS scientific_name, a.type AS type
        """, {"disease": disease})

    def get_disease_environment(self, disease: str) -> list[dict]:
        """Environmental conditions that favour a disease (exact name)."""
        return self.query("""
            MATCH (d:Disease {name: $disease})-[:FAVOURED_BY]->(e:EnvironmentalCondition)
            RETURN e.temperature AS temperature,
                   e.humidity AS humidity,
                   e.soil_moisture AS soil_moisture,
                   e.rainfall_pattern AS rainfall_pattern
        """, {"disease": disease})

    def get_general_guidelines(self) -> list[dict]:
        return self.query("""
            MATCH (g:GeneralGuideline)
            RETURN g.id AS guideline_name, g.description AS description, g.guideline AS guideline
            ORDER BY guideline_name
        """)
