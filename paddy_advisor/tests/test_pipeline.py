"""Pipeline integration: ordered stages over the in-memory store and bundled graph."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from paddy_advisor.config_loader import BudgetTierConfig, DomainConfig
from paddy_advisor.errors import StoreUnavailable, UnknownLocation
from paddy_advisor.logic.pipeline import AdvisoryPipeline, build_stages
from paddy_advisor.logic.state import (
    HAS_PRIMARY_SOURCE,
    IS_AFFORDABLE,
    IS_CONTROL_METHOD_SUITABLE,
    PRIORITY,
    TREATMENT,
)
from paddy_advisor.memory_store import InMemoryFactStore


class FailingStore(InMemoryFactStore):
    """Fails the write of one named stage."""

    def __init__(self, fail_stage):
        super().__init__()
        self.fail_stage = fail_stage

    def apply_batch(self, session_id, batch):
        if batch.stage == self.fail_stage:
            raise StoreUnavailable(f"write of {batch.stage} timed out")
        super().apply_batch(session_id, batch)


@pytest.fixture
def pipeline(memory_store, config):
    return AdvisoryPipeline(memory_store, config)


class TestStageOrder:
    def test_stages_run_in_fixed_order(self, pipeline):
        report = pipeline.submit("Rice Blast", "100", "Kandy", "Spray")
        assert [s.name for s in report.stages] == [
            "reset",
            "budget_tiers",
            "control_method_suitability",
            "primary_source",
            "symptom_specificity",
        ]
        assert report.total_facts == sum(s.facts for s in report.stages)
        assert report.to_dict()["session_id"] == report.session_id

    def test_tenant_multipliers_are_used(self, memory_store):
        config = DomainConfig(budget_tiers=BudgetTierConfig(medium_multiplier="1.1", low_multiplier="1.3"))
        config.diseases = {"Rice Blast": "Rice_Blast"}
        config.locations = {"Kandy": "Kandy"}
        report = AdvisoryPipeline(memory_store, config).submit("Rice Blast", "100", "Kandy", "Spray")

        derived = memory_store.derived_state(report.session_id)
        # 115 is within 1.3x but not 1.1x of 100
        assert derived.value(TREATMENT, "T_RB_Isoprothiolane", PRIORITY) == "Low"

    def test_build_stages_binds_rule_table(self, config):
        names = [name for name, _ in build_stages(config)]
        assert names[3] == "primary_source"


class TestEndToEnd:
    def test_kandy_rice_blast_airborne_spores(self, pipeline, memory_store):
        report = pipeline.submit("Rice Blast", "100", "Kandy", "Spray")
        details = memory_store.get_disease_details(report.session_id)

        assert len(details) == 1
        assert details[0]["disease_name"] == "Rice Blast"
        assert "Airborne Spores" in details[0]["primary_sources"]
        assert "Soil and Water" in details[0]["primary_sources"]
        assert [s["symptom"] for s in details[0]["symptoms"]] == ["RB_Leaf_Lesions"]

    def test_suitable_treatments_projection(self, pipeline, memory_store):
        report = pipeline.submit("Rice Blast", "100", "Kandy", "Spray")
        rows = memory_store.get_suitable_treatments(report.session_id)

        assert [(r["control_method"], r["treatment"]) for r in rows] == [
            ("CM_RB_Isoprothiolane", "T_RB_Azoxystrobin"),
            ("CM_RB_Isoprothiolane", "T_RB_Isoprothiolane"),
            ("CM_RB_Tricyclazole", "T_RB_Tricyclazole"),
        ]
        by_id = {r["treatment"]: r for r in rows}
        assert by_id["T_RB_Tricyclazole"]["priority"] == "High"
        assert by_id["T_RB_Isoprothiolane"]["priority"] == "Medium"
        assert by_id["T_RB_Azoxystrobin"]["priority"] is None
        assert by_id["T_RB_Azoxystrobin"]["is_affordable"] is False
        assert by_id["T_RB_Tricyclazole"]["is_suitable"] is True
        assert by_id["T_RB_Tricyclazole"]["safety_measures"] == ["Wear gloves and a mask while mixing"]

    def test_general_treatments_defaults(self, pipeline, memory_store):
        report = pipeline.submit("Rice Blast", "100", "Kandy", "Cultural")
        rows = memory_store.get_general_treatments(report.session_id)

        assert [r["treatment"] for r in rows] == ["T_RB_Sanitation"]
        assert rows[0]["environment_impact"] == "No environment impact"
        assert rows[0]["condition"] == "No condition"
        assert rows[0]["impact"] == "Reduces inoculum for the next season"

    def test_rerun_is_idempotent(self, pipeline, memory_store):
        report = pipeline.submit("Rice Blast", "100", "Kandy", "Spray")
        first = memory_store.derived_state(report.session_id).facts

        pipeline.run(memory_store.get_session(report.session_id))
        assert memory_store.derived_state(report.session_id).facts == first

    def test_input_error_writes_nothing(self, pipeline, memory_store):
        with pytest.raises(UnknownLocation):
            pipeline.submit("Rice Blast", "100", "Atlantis", "Spray")
        assert memory_store.cleanup_stale_sessions(max_age_ms=-10 ** 12) == 0


class TestFailure:
    def test_earlier_stages_are_not_rolled_back(self, config):
        store = FailingStore("primary_source")
        with pytest.raises(StoreUnavailable):
            AdvisoryPipeline(store, config).submit("Rice Blast", "100", "Kandy", "Spray")

        (session_id,) = store._sessions
        derived = store.derived_state(session_id)
        assert derived.value(TREATMENT, "T_RB_Tricyclazole", PRIORITY) == "High"
        assert derived.value(TREATMENT, "T_RB_Tricyclazole", IS_CONTROL_METHOD_SUITABLE) is True
        assert derived.values("Disease", "Rice_Blast", HAS_PRIMARY_SOURCE) == []


class TestSessionIsolation:
    def test_two_sessions_keep_independent_facts(self, pipeline, memory_store):
        rich = pipeline.submit("Rice Blast", "100", "Kandy", "Spray")
        poor = pipeline.submit("Rice Blast", "10", "Kandy", "Cultural")

        rich_state = memory_store.derived_state(rich.session_id)
        poor_state = memory_store.derived_state(poor.session_id)
        assert rich_state.value(TREATMENT, "T_RB_Tricyclazole", PRIORITY) == "High"
        assert poor_state.value(TREATMENT, "T_RB_Tricyclazole", IS_AFFORDABLE) is False
        assert poor_state.value(TREATMENT, "T_RB_Tricyclazole", IS_CONTROL_METHOD_SUITABLE) is None

    def test_concurrent_submissions(self, pipeline, memory_store):
        inputs = [("Spray" if i % 2 else "Cultural", str(50 + i * 10)) for i in range(8)]

        with ThreadPoolExecutor(max_workers=4) as pool:
            reports = list(pool.map(
                lambda args: pipeline.submit("Rice Blast", args[1], "Kandy", args[0]), inputs
            ))

        for (method, _), report in zip(inputs, reports):
            rows = memory_store.get_suitable_treatments(report.session_id)
            if method == "Spray":
                assert len(rows) == 3
            else:
                assert rows == []

    def test_purge_removes_only_that_session(self, pipeline, memory_store):
        keep = pipeline.submit("Rice Blast", "100", "Kandy", "Spray")
        drop = pipeline.submit("Rice Blast", "100", "Kandy", "Spray")

        memory_store.purge_session(drop.session_id)
        assert memory_store.get_disease_details(drop.session_id) == []
        assert memory_store.get_disease_details(keep.session_id) != []
