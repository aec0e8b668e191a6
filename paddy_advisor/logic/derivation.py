"""Derived-fact stages: reset, budget tiers, control-method suitability, symptom specificity.

Each stage is a pure function (Session, GraphSnapshot) -> FactBatch. Stages never
write anywhere; the pipeline orchestrator persists each batch and folds it into
the snapshot before the next stage reads it.
"""

from decimal import Decimal, localcontext

from .state import (
    IS_AFFORDABLE,
    IS_CONTROL_METHOD_SUITABLE,
    IS_SPECIFIC,
    IS_SUITABLE,
    PRIORITY,
    SYMPTOM,
    TREATMENT,
    FactBatch,
    GraphSnapshot,
    Priority,
    Session,
)

MEDIUM_MULTIPLIER = Decimal("1.2")
LOW_MULTIPLIER = Decimal("1.5")

_TIERED = {Priority.HIGH.value, Priority.MEDIUM.value, Priority.LOW.value}


def _digits(value: Decimal) -> int:
    return len(value.as_tuple().digits)


def reset_derived_facts(session: Session, snapshot: GraphSnapshot) -> FactBatch:
    """Retract every derived fact of the session so a recompute starts clean."""
    return FactBatch(stage="reset", retract_session=True)


def cost_tier(cost: Decimal, budget: Decimal,
              medium_multiplier: Decimal = MEDIUM_MULTIPLIER,
              low_multiplier: Decimal = LOW_MULTIPLIER):
    """Priority for a treatment cost against a budget, None when unaffordable.

    Bounds are inclusive on the upper side: cost == budget is High,
    cost == budget * 1.2 is Medium, cost == budget * 1.5 is Low.
    """
    if budget >= cost:
        return Priority.HIGH
    # Products must be exact: widen precision to fit every digit of budget * multiplier.
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, _digits(budget) + max(_digits(medium_multiplier), _digits(low_multiplier)))
        medium_bound = budget * medium_multiplier
        low_bound = budget * low_multiplier
    if cost <= medium_bound:
        return Priority.MEDIUM
    if cost <= low_bound:
        return Priority.LOW
    return None


def classify_budget_tiers(session: Session, snapshot: GraphSnapshot,
                          medium_multiplier: Decimal = MEDIUM_MULTIPLIER,
                          low_multiplier: Decimal = LOW_MULTIPLIER) -> FactBatch:
    """Assign a cost tier to every treatment relative to the session budget."""
    batch = FactBatch(stage="budget_tiers")
    budget = session.budget

    for treatment_id in sorted(snapshot.treatments):
        cost = snapshot.treatments[treatment_id].cost
        if cost is None:
            continue
        tier = cost_tier(cost, budget, medium_multiplier, low_multiplier)
        if tier is None:
            batch.add(TREATMENT, treatment_id, IS_AFFORDABLE, False)
        else:
            batch.add(TREATMENT, treatment_id, PRIORITY, tier.value)

    # Second pass: anything holding a tier (from this batch or already derived
    # for this session) is affordable.
    tiered = {
        f.entity_id for f in batch.assertions
        if f.attribute == PRIORITY and f.value in _TIERED
    }
    for tier in _TIERED:
        tiered |= snapshot.derived.entities_with(TREATMENT, PRIORITY, tier)
    for treatment_id in sorted(tiered):
        batch.add(TREATMENT, treatment_id, IS_AFFORDABLE, True)

    return batch


def match_control_methods(session: Session, snapshot: GraphSnapshot) -> FactBatch:
    """Flag treatments reachable from a control method the user asked for,
    then flag the affordable ones among all method-suitable treatments as suitable.
    """
    batch = FactBatch(stage="control_method_suitability")
    wanted = session.control_method_input.casefold()

    suitable_by_method: set[str] = set()
    if wanted:
        for cm in snapshot.control_methods:
            if cm.method is not None and cm.method.casefold() == wanted:
                suitable_by_method.update(cm.treatment_ids)
    for treatment_id in sorted(suitable_by_method):
        batch.add(TREATMENT, treatment_id, IS_CONTROL_METHOD_SUITABLE, True)

    suitable_by_method |= snapshot.derived.entities_with(TREATMENT, IS_CONTROL_METHOD_SUITABLE, True)
    affordable = snapshot.derived.entities_with(TREATMENT, IS_AFFORDABLE, True)
    for treatment_id in sorted(suitable_by_method & affordable):
        batch.add(TREATMENT, treatment_id, IS_SUITABLE, True)

    return batch


def match_specific_symptoms(session: Session, snapshot: GraphSnapshot) -> FactBatch:
    """Flag the disease's symptoms whose required profile equals the location's.

    All-or-nothing: every one of the five fields must be present and equal.
    """
    batch = FactBatch(stage="symptom_specificity")
    location_profile = snapshot.location.profile
    for symptom in snapshot.symptoms:
        if symptom.profile.matches(location_profile):
            batch.add(SYMPTOM, symptom.id, IS_SPECIFIC, True)
    return batch


__all__ = [
    "reset_derived_facts",
    "cost_tier",
    "classify_budget_tiers",
    "match_control_methods",
    "match_specific_symptoms",
]
