"""Entity model for the paddy advisory graph.

Every node kind the pipeline touches is an explicit dataclass here. Stores turn
their raw rows into these types; pipeline stages only ever see these types.

Architecture:
    (UserInput)-[:HAS_DISEASE]->(Disease)-[:HAS_CONTROL_METHOD]->(ControlMethod)-[:HAS_TREATMENT]->(Treatment)
        |                          +-[:HAS_SYMPTOM]->(Symptom)-[:AFFECTED_BY]->(EnvironmentalProfile)
        +-[:HAS_LOCATION]->(Location {humidity, temperature_range, ...})

Derived facts are keyed by session, never written onto the shared entities.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional


# Entity kinds carrying derived attributes
TREATMENT = "Treatment"
DISEASE = "Disease"
SYMPTOM = "Symptom"

# Derived attribute names
PRIORITY = "priority"
IS_AFFORDABLE = "isAffordable"
IS_CONTROL_METHOD_SUITABLE = "isControlMethodSuitable"
IS_SUITABLE = "isSuitable"
HAS_PRIMARY_SOURCE = "hasPrimarySource"
IS_SPECIFIC = "isSpecific"

DERIVED_ATTRIBUTES = (
    PRIORITY,
    IS_AFFORDABLE,
    IS_CONTROL_METHOD_SUITABLE,
    IS_SUITABLE,
    HAS_PRIMARY_SOURCE,
    IS_SPECIFIC,
)


class Priority(str, Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


def to_decimal(value) -> Optional[Decimal]:
    """Parse a stored numeric value into a Decimal, None if absent or unparseable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    try:
        # str() first so floats keep their shortest repr instead of binary noise
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return parsed if parsed.is_finite() else None


# =============================================================================
# ENVIRONMENTAL PROFILE
# =============================================================================

PROFILE_FIELDS = (
    "humidity",
    "temperature_range",
    "soil_moisture",
    "light_intensity",
    "rainfall_pattern",
)

# The background graph carries two naming variants: "_L"-suffixed names on the
# location side and plain names on the symptom side. Earlier aliases win.
PROFILE_FIELD_ALIASES = {
    "humidity": ("humidity", "humidity_l", "hashumidity_l", "hashumidity"),
    "temperature_range": (
        "temperature_range", "temperature_range_l", "hastemperaturerange_l",
        "hastemperaturerange", "hastemperaturerange_symp",
    ),
    "soil_moisture": ("soil_moisture", "soil_moisture_l", "hassoilmoisture_l", "hassoilmoisture"),
    "light_intensity": (
        "light_intensity", "light_intensity_l", "haslightintensity_l", "haslightintensity",
    ),
    "rainfall_pattern": (
        "rainfall_pattern", "rainfall_pattern_l", "hasrainfallpattern_l", "hasrainfallpattern",
    ),
}


def _fold(value) -> Optional[str]:
    if value is None:
        return None
    return str(value).casefold()


@dataclass(frozen=True)
class EnvironmentalProfile:
    """Five categorical labels describing (or required by) an environment."""
    humidity: Optional[str] = None
    temperature_range: Optional[str] = None
    soil_moisture: Optional[str] = None
    light_intensity: Optional[str] = None
    rainfall_pattern: Optional[str] = None

    @classmethod
    def from_properties(cls, props: Optional[dict]) -> "EnvironmentalProfile":
        """Normalize raw node properties, accepting either naming variant."""
        if not props:
            return cls()
        lowered = {str(k).lower(): v for k, v in props.items() if v not in (None, "")}
        values = {}
        for name in PROFILE_FIELDS:
            for alias in PROFILE_FIELD_ALIASES[name]:
                if alias in lowered:
                    values[name] = str(lowered[alias])
                    break
        return cls(**values)

    def get(self, name: str) -> Optional[str]:
        return getattr(self, name)

    def field_equals(self, name: str, expected: str) -> bool:
        """Case-insensitive comparison of one field; a missing field never matches."""
        actual = self.get(name)
        return actual is not None and _fold(actual) == _fold(expected)

    @property
    def is_complete(self) -> bool:
        return all(self.get(name) is not None for name in PROFILE_FIELDS)

    def matches(self, other: "EnvironmentalProfile") -> bool:
        """All five fields present on both sides and equal ignoring case."""
        if not (self.is_complete and other.is_complete):
            return False
        return all(_fold(self.get(n)) == _fold(other.get(n)) for n in PROFILE_FIELDS)

    def to_dict(self) -> dict:
        return {name: self.get(name) for name in PROFILE_FIELDS}


# =============================================================================
# BACKGROUND ENTITIES
# =============================================================================

@dataclass
class Treatment:
    id: str
    name: str = ""
    cost: Optional[Decimal] = None
    effectiveness: Optional[str] = None
    environment_impact: Optional[str] = None
    impact: Optional[str] = None
    condition: Optional[str] = None
    safety_measures: list[str] = field(default_factory=list)
    instructions: list[str] = field(default_factory=list)
    application_frequency: list[str] = field(default_factory=list)


@dataclass
class ControlMethod:
    id: str
    method: str
    treatment_ids: list[str] = field(default_factory=list)
    treatment_status: str = ""  # "R" recommended product, "P" general practice
    product_name: str = ""
    description: Optional[str] = None
    active_ingredient: Optional[str] = None


@dataclass
class Symptom:
    id: str
    description: str = ""
    affected_parts: list[str] = field(default_factory=list)
    profile: EnvironmentalProfile = field(default_factory=EnvironmentalProfile)


@dataclass
class Disease:
    id: str
    name: str
    overall_symptoms: Optional[str] = None
    symptom_ids: list[str] = field(default_factory=list)
    control_method_ids: list[str] = field(default_factory=list)
    agent_scientific_name: Optional[str] = None
    agent_type: Optional[str] = None
    # favourable conditions, read by the disease-environment projection only
    environment: dict = field(default_factory=dict)


@dataclass
class Location:
    id: str
    name: str
    profile: EnvironmentalProfile = field(default_factory=EnvironmentalProfile)


@dataclass
class GeneralGuideline:
    id: str
    description: Optional[str] = None
    guideline: Optional[str] = None


@dataclass(frozen=True)
class Session:
    """One submission. Created once by the session loader, never mutated."""
    id: str
    disease_id: str
    location_id: str
    budget: Decimal
    control_method_input: str = ""
    created_at: int = 0

    def to_properties(self) -> dict:
        return {
            "id": self.id,
            "budget": str(self.budget),
            "control_method_input": self.control_method_input,
            "created_at": self.created_at,
        }


# =============================================================================
# DERIVED FACTS
# =============================================================================

@dataclass(frozen=True)
class DerivedFact:
    entity_kind: str
    entity_id: str
    attribute: str
    value: object


@dataclass
class FactBatch:
    """What one pipeline stage wants written for a session."""
    stage: str
    assertions: list[DerivedFact] = field(default_factory=list)
    retract_session: bool = False

    def add(self, entity_kind: str, entity_id: str, attribute: str, value) -> None:
        self.assertions.append(DerivedFact(entity_kind, entity_id, attribute, value))

    def __len__(self) -> int:
        return len(self.assertions)


class DerivedState:
    """Derived facts visible to the stages of one session's run.

    Multi-valued by construction: asserting the same fact twice keeps one copy,
    asserting a second value for the same attribute keeps both.
    """

    def __init__(self, facts=None):
        self.facts: set[DerivedFact] = set(facts or ())

    def apply(self, batch: FactBatch) -> None:
        if batch.retract_session:
            self.facts.clear()
        self.facts.update(batch.assertions)

    def values(self, entity_kind: str, entity_id: str, attribute: str) -> list:
        found = [
            f.value for f in self.facts
            if f.entity_kind == entity_kind and f.entity_id == entity_id and f.attribute == attribute
        ]
        return sorted(found, key=str)

    def value(self, entity_kind: str, entity_id: str, attribute: str):
        found = self.values(entity_kind, entity_id, attribute)
        return found[0] if found else None

    def entities_with(self, entity_kind: str, attribute: str, value) -> set[str]:
        return {
            f.entity_id for f in self.facts
            if f.entity_kind == entity_kind and f.attribute == attribute and f.value == value
        }

    def __len__(self) -> int:
        return len(self.facts)


@dataclass
class GraphSnapshot:
    """Background facts one session's pipeline reads, plus derived facts so far."""
    session: Session
    disease: Disease
    location: Location
    treatments: dict[str, Treatment] = field(default_factory=dict)
    control_methods: list[ControlMethod] = field(default_factory=list)
    symptoms: list[Symptom] = field(default_factory=list)
    derived: DerivedState = field(default_factory=DerivedState)
