"""
market_services -- outer layer: maintenance sweeps, scheduling and
runtime assembly from configuration.
"""

from market_services.maintenance import (
    ExpirySweepResult,
    MaintenanceReport,
    MaintenanceService,
)
from market_services.runtime import MarketRuntime, build_runtime
from market_services.scheduler import MaintenanceScheduler

__all__ = [
    "MaintenanceService",
    "MaintenanceReport",
    "ExpirySweepResult",
    "MaintenanceScheduler",
    "MarketRuntime",
    "build_runtime",
]
