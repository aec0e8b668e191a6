"""Control-method matching and overall suitability."""

from paddy_advisor.logic.derivation import classify_budget_tiers, match_control_methods
from paddy_advisor.logic.state import IS_CONTROL_METHOD_SUITABLE, IS_SUITABLE


def _with_tiers(snapshot):
    snapshot.derived.apply(classify_budget_tiers(snapshot.session, snapshot))
    return snapshot


def _entities(batch, attribute):
    return {f.entity_id for f in batch.assertions if f.attribute == attribute and f.value is True}


class TestControlMethodMatch:
    def test_matches_method_name(self, session, spray_snapshot):
        batch = match_control_methods(session, _with_tiers(spray_snapshot))
        assert _entities(batch, IS_CONTROL_METHOD_SUITABLE) == {"T_cheap", "T_mid", "T_pricey"}

    def test_match_ignores_case(self, spray_snapshot, make_session):
        for variant in ("spray", "SPRAY", "sPrAy"):
            session = make_session(control_method=variant)
            spray_snapshot.session = session
            batch = match_control_methods(session, spray_snapshot)
            assert _entities(batch, IS_CONTROL_METHOD_SUITABLE) == {"T_cheap", "T_mid", "T_pricey"}, variant

    def test_empty_input_matches_nothing(self, spray_snapshot, make_session):
        session = make_session(control_method="")
        batch = match_control_methods(session, _with_tiers(spray_snapshot))
        assert len(batch) == 0

    def test_surrounding_whitespace_is_not_trimmed(self, spray_snapshot, make_session):
        session = make_session(control_method=" Spray ")
        batch = match_control_methods(session, spray_snapshot)
        assert _entities(batch, IS_CONTROL_METHOD_SUITABLE) == set()

    def test_unknown_method_matches_nothing(self, spray_snapshot, make_session):
        session = make_session(control_method="Flooding")
        assert len(match_control_methods(session, spray_snapshot)) == 0


class TestSuitability:
    def test_suitable_is_method_match_and_affordable(self, session, spray_snapshot):
        batch = match_control_methods(session, _with_tiers(spray_snapshot))
        # T_pricey (160) is over 1.5x the budget of 100
        assert _entities(batch, IS_SUITABLE) == {"T_cheap", "T_mid"}

    def test_affordable_but_other_method_is_not_suitable(self, session, spray_snapshot):
        batch = match_control_methods(session, _with_tiers(spray_snapshot))
        assert "T_practice" not in _entities(batch, IS_SUITABLE)

    def test_without_affordability_nothing_is_suitable(self, session, make_snapshot):
        snapshot = make_snapshot(session, costs={"T1": "10"})
        snapshot.control_methods = []
        assert _entities(match_control_methods(session, snapshot), IS_SUITABLE) == set()
