"""
market_services.scheduler -- APScheduler wiring for maintenance sweeps.

One interval job.  ``max_instances=1`` and ``coalesce=True`` keep the
scheduler from starting a run while the previous one is still going and
from replaying a backlog of missed runs; ``MaintenanceService.run_sweep``
additionally refuses to overlap with itself.
"""

from __future__ import annotations

from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from market_kernel.logging_config import get_logger
from market_services.maintenance import MaintenanceService

logger = get_logger("services.scheduler")

SWEEP_JOB_ID = "market_maintenance_sweep"


class MaintenanceScheduler:
    def __init__(
        self,
        maintenance: MaintenanceService,
        interval_seconds: int = 3600,
        misfire_grace_time: int = 60,
    ):
        self._maintenance = maintenance
        self._interval_seconds = interval_seconds
        self.scheduler = BackgroundScheduler(
            jobstores={"default": MemoryJobStore()},
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": misfire_grace_time,
            },
            timezone="UTC",
        )

    def setup_jobs(self) -> None:
        self.scheduler.add_job(
            self._maintenance.run_sweep,
            trigger=IntervalTrigger(seconds=self._interval_seconds),
            id=SWEEP_JOB_ID,
            name="Maintenance sweep - request expiry and idempotency cleanup",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        logger.info(
            "maintenance_job_scheduled",
            extra={"job_id": SWEEP_JOB_ID, "interval_seconds": self._interval_seconds},
        )

    def start(self) -> None:
        if not self.scheduler.get_job(SWEEP_JOB_ID):
            self.setup_jobs()
        self.scheduler.start()
        logger.info("maintenance_scheduler_started")

    def shutdown(self, wait: bool = True) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            logger.info("maintenance_scheduler_stopped")
