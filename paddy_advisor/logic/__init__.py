"""Logic module for derived-fact inference over the paddy knowledge graph."""

from .state import (
    EnvironmentalProfile,
    FactBatch,
    DerivedFact,
    GraphSnapshot,
    Priority,
    Session,
)
from .derivation import (
    classify_budget_tiers,
    match_control_methods,
    match_specific_symptoms,
    reset_derived_facts,
)
from .primary_source import determine_primary_sources

__all__ = [
    'EnvironmentalProfile',
    'FactBatch',
    'DerivedFact',
    'GraphSnapshot',
    'Priority',
    'Session',
    'classify_budget_tiers',
    'match_control_methods',
    'match_specific_symptoms',
    'reset_derived_facts',
    'determine_primary_sources',
]
