"""Configuration Loader for the paddy treatment advisor.

Two sources:
- Environment (.env via python-dotenv): fact store connection and timeouts.
- Tenant YAML (tenants/<tenant_id>/config.yaml): vocabularies, budget tier
  multipliers and the primary-source rule table, validated with pydantic.
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from .logic.state import PROFILE_FIELDS

load_dotenv()


# =============================================================================
# PYDANTIC MODELS FOR CONFIGURATION VALIDATION
# =============================================================================

class BudgetTierConfig(BaseModel):
    """Cost thresholds relative to the session budget."""
    medium_multiplier: Decimal = Decimal("1.2")
    low_multiplier: Decimal = Decimal("1.5")

    @field_validator("medium_multiplier", "low_multiplier", mode="before")
    @classmethod
    def _exact_decimal(cls, v):
        # YAML floats would otherwise reach Decimal through binary floating point
        return Decimal(str(v))

    @field_validator("low_multiplier")
    @classmethod
    def _ordered(cls, v, info):
        medium = info.data.get("medium_multiplier")
        if medium is not None and v < medium:
            raise ValueError("low_multiplier must be >= medium_multiplier")
        return v


class PrimarySourceRule(BaseModel):
    """One row of the primary-source table: disease + profile conditions -> label."""
    id: str
    disease: str
    conditions: dict[str, str] = Field(default_factory=dict)
    label: str
    description: str = ""

    @field_validator("conditions")
    @classmethod
    def _known_fields(cls, v):
        unknown = sorted(set(v) - set(PROFILE_FIELDS))
        if unknown:
            raise ValueError(f"Unknown environmental profile field(s): {unknown}")
        return v


class StoreSettings(BaseModel):
    """Fact store connection settings (from environment)."""
    backend: str = "neo4j"
    uri: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None
    database: str = "neo4j"
    timeout_s: float = 10.0


def get_store_settings() -> StoreSettings:
    return StoreSettings(
        backend=os.getenv("FACT_STORE_BACKEND", "neo4j").lower(),
        uri=os.getenv("NEO4J_URI"),
        user=os.getenv("NEO4J_USER"),
        password=os.getenv("NEO4J_PASSWORD"),
        database=os.getenv("NEO4J_DATABASE", "neo4j"),
        timeout_s=float(os.getenv("FACT_STORE_TIMEOUT_S", "10")),
    )


@dataclass
class DomainConfig:
    """Complete tenant configuration container."""

    tenant_id: str = ""
    name: str = ""
    description: str = ""
    version: str = "1.0"

    # Display name -> graph node id
    diseases: dict[str, str] = field(default_factory=dict)
    locations: dict[str, str] = field(default_factory=dict)

    budget_tiers: BudgetTierConfig = field(default_factory=BudgetTierConfig)
    primary_source_rules: list[PrimarySourceRule] = field(default_factory=list)

    def disease_id(self, display_name: str) -> Optional[str]:
        return self.diseases.get(display_name)

    def location_id(self, display_name: str) -> Optional[str]:
        return self.locations.get(display_name)


# =============================================================================
# CONFIGURATION LOADER
# =============================================================================

DEFAULT_TENANT = os.environ.get("TENANT_ID", "sri_lanka")

_PACKAGE_DIR = Path(__file__).parent
_TENANTS_DIR = _PACKAGE_DIR / "tenants"


def _resolve_config_path(tenant_id: str) -> Path:
    return _TENANTS_DIR / tenant_id / "config.yaml"


def get_available_tenants() -> list[dict]:
    """Discover tenant configurations under tenants/."""
    tenants = []
    if not _TENANTS_DIR.exists():
        return tenants
    for tenant_dir in sorted(_TENANTS_DIR.iterdir()):
        config_path = tenant_dir / "config.yaml"
        if tenant_dir.is_dir() and config_path.exists():
            with open(config_path, 'r', encoding='utf-8') as f:
                raw = yaml.safe_load(f) or {}
            meta = raw.get("tenant", {})
            tenants.append({
                "id": tenant_dir.name,
                "name": meta.get("name", tenant_dir.name),
                "description": meta.get("description", ""),
                "version": str(meta.get("version", "1.0")),
                "config_file": str(config_path),
            })
    return tenants


def load_domain_config(config_path: Optional[str] = None, tenant_id: Optional[str] = None) -> DomainConfig:
    """Load and validate tenant configuration from YAML file.

    Args:
        config_path: Path to config file. If None, uses tenant_id to find config.
        tenant_id: Tenant identifier. If None, uses DEFAULT_TENANT.

    Returns:
        Validated DomainConfig object
    """
    if config_path is None:
        config_path = _resolve_config_path(tenant_id or DEFAULT_TENANT)

    with open(config_path, 'r', encoding='utf-8') as f:
        raw = yaml.safe_load(f) or {}

    config = DomainConfig()

    meta = raw.get("tenant", {})
    config.tenant_id = meta.get("id", tenant_id or DEFAULT_TENANT)
    config.name = meta.get("name", "")
    config.description = meta.get("description", "")
    config.version = str(meta.get("version", "1.0"))

    vocab = raw.get("vocabulary", {})
    config.diseases = {str(k): str(v) for k, v in (vocab.get("diseases") or {}).items()}
    config.locations = {str(k): str(v) for k, v in (vocab.get("locations") or {}).items()}

    config.budget_tiers = BudgetTierConfig(**(raw.get("budget_tiers") or {}))

    for rule in raw.get("primary_source_rules", []):
        config.primary_source_rules.append(PrimarySourceRule(**rule))

    return config


# =============================================================================
# GLOBAL CONFIG SINGLETON
# =============================================================================

_configs: dict[str, DomainConfig] = {}


def get_config(tenant_id: Optional[str] = None) -> DomainConfig:
    """Get the loaded tenant configuration (cached per tenant)."""
    tenant_id = tenant_id or DEFAULT_TENANT
    if tenant_id not in _configs:
        _configs[tenant_id] = load_domain_config(tenant_id=tenant_id)
    return _configs[tenant_id]


def reload_config(config_path: Optional[str] = None, tenant_id: Optional[str] = None) -> DomainConfig:
    """Force reload of configuration."""
    tenant_id = tenant_id or DEFAULT_TENANT
    _configs[tenant_id] = load_domain_config(config_path, tenant_id)
    return _configs[tenant_id]
