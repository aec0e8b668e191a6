"""Symptom specificity: all five profile fields must equal the location's."""

from dataclasses import replace

import pytest

from paddy_advisor.logic.derivation import match_specific_symptoms
from paddy_advisor.logic.state import IS_SPECIFIC, PROFILE_FIELDS, EnvironmentalProfile, Symptom


def _specific(batch):
    return {f.entity_id for f in batch.assertions if f.attribute == IS_SPECIFIC and f.value is True}


def test_only_the_matching_symptom_is_specific(session, spray_snapshot):
    assert _specific(match_specific_symptoms(session, spray_snapshot)) == {"S_match"}


@pytest.mark.parametrize("field_name", PROFILE_FIELDS)
def test_changing_one_field_flips_result(session, spray_snapshot, kandy_profile, field_name):
    spray_snapshot.location.profile = replace(kandy_profile, **{field_name: "Other"})
    assert "S_match" not in _specific(match_specific_symptoms(session, spray_snapshot))


def test_comparison_ignores_case(session, spray_snapshot, kandy_profile):
    spray_snapshot.location.profile = EnvironmentalProfile(
        **{name: value.upper() for name, value in kandy_profile.to_dict().items()}
    )
    assert "S_match" in _specific(match_specific_symptoms(session, spray_snapshot))


def test_missing_field_on_both_sides_is_not_a_match(session, spray_snapshot, kandy_profile):
    partial = replace(kandy_profile, light_intensity=None)
    spray_snapshot.location.profile = partial
    spray_snapshot.symptoms = [Symptom(id="S_partial", profile=partial)]
    assert _specific(match_specific_symptoms(session, spray_snapshot)) == set()


def test_symptom_side_naming_variant(session, spray_snapshot):
    profile = EnvironmentalProfile.from_properties({
        "hasHumidity": "High",
        "hasTemperatureRange_symp": "Optimal",
        "hasSoilMoisture": "High",
        "hasLightIntensity": "Moderate",
        "hasRainfallPattern": "VeryHigh",
    })
    spray_snapshot.symptoms = [Symptom(id="S_variant", profile=profile)]
    assert _specific(match_specific_symptoms(session, spray_snapshot)) == {"S_variant"}
