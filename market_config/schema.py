"""
MarketConfig schema.

Frozen dataclasses for the runtime configuration.  YAML documents are
parsed into these types by ``market_config.loader``.  The engine policy
types (``TrustPolicy``, ``RestrictionPolicy``, ``FraudPolicy``) are reused
as-is so thresholds flow to the engines without translation.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from market_engines.fraud import FraudPolicy
from market_engines.restriction import RestrictionPolicy
from market_engines.trust import TrustPolicy

# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite:///market.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    sqlite_busy_timeout: float = 30.0


@dataclass(frozen=True)
class CoordinatorSettings:
    lock_timeout_seconds: float = 5.0


@dataclass(frozen=True)
class IdempotencySettings:
    ttl_seconds: int = 86400
    processing_lease_seconds: int = 300
    max_key_length: int = 128
    sweep_batch_size: int | None = None


@dataclass(frozen=True)
class MaintenanceSettings:
    enabled: bool = True
    sweep_interval_seconds: int = 3600
    request_expiry_days: int = 7


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MarketConfig:
    """The complete runtime configuration."""

    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    coordinator: CoordinatorSettings = field(default_factory=CoordinatorSettings)
    idempotency: IdempotencySettings = field(default_factory=IdempotencySettings)
    maintenance: MaintenanceSettings = field(default_factory=MaintenanceSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    trust: TrustPolicy = field(default_factory=TrustPolicy)
    restriction: RestrictionPolicy = field(default_factory=RestrictionPolicy)
    fraud: FraudPolicy = field(default_factory=FraudPolicy)
    admin_registry: frozenset[str] = frozenset()
    checksum: str = ""

    @property
    def database_url(self) -> str:
        return self.database.url
