"""Primary infection source determination.

A rule table (tenant config, `primary_source_rules`) maps a disease plus a set of
environmental profile conditions to a source label. Rows are independent and
additive: every row whose disease and conditions match the session asserts its
label, there is no first-match-wins.

Both historical location naming variants are folded into one EnvironmentalProfile
before this module sees them, so a single row covers what used to be two
differently-named rules (e.g. "_L" humidity/rainfall vs plain humidity/rainfall).
"""

import logging
from typing import Iterable

from .state import (
    DISEASE,
    HAS_PRIMARY_SOURCE,
    EnvironmentalProfile,
    FactBatch,
    GraphSnapshot,
    Session,
)

logger = logging.getLogger(__name__)


def rule_matches(rule, disease_name: str, profile: EnvironmentalProfile) -> bool:
    """True when the disease name and every listed profile condition match, ignoring case."""
    if (disease_name or "").casefold() != rule.disease.casefold():
        return False
    return all(profile.field_equals(name, value) for name, value in rule.conditions.items())


def matching_rules(rules: Iterable, disease_name: str, profile: EnvironmentalProfile) -> list:
    return [rule for rule in rules if rule_matches(rule, disease_name, profile)]


def determine_primary_sources(session: Session, snapshot: GraphSnapshot, rules: Iterable = ()) -> FactBatch:
    """Assert every primary-source label whose rule fires for this session."""
    batch = FactBatch(stage="primary_source")
    disease = snapshot.disease

    labels = []
    for rule in matching_rules(rules, disease.name, snapshot.location.profile):
        logger.debug(f"[PRIMARY SOURCE] {rule.id} fired for {disease.name}: {rule.label}")
        if rule.label not in labels:
            labels.append(rule.label)

    for label in labels:
        batch.add(DISEASE, disease.id, HAS_PRIMARY_SOURCE, label)
    return batch
