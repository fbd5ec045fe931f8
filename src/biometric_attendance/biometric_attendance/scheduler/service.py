"""Background jobs for the biometric pipeline.

Two cron jobs (device sync, then reconciliation) and on-demand one-off sync
jobs share a single-worker executor, so jobs run one after another and a job
never overlaps itself. Jobs waiting behind a running one are delayed, never
dropped.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MISSED, JobExecutionEvent
from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from ..core.constants import DEFAULT_PROCESS_CRON, DEFAULT_SYNC_CRON, DEFAULT_SYNC_DAYS_BACK, DEFAULT_TIMEZONE
from ..reconciliation.model import ReconciliationSummary
from ..reconciliation.service import ReconciliationService
from ..sync.model import SyncAllResult
from ..sync.service import SyncService

logger = logging.getLogger(__name__)

SYNC_JOB_ID = "biometric-sync-all"
PROCESS_JOB_ID = "biometric-process"


@dataclass(frozen=True)
class SchedulerSettings:
    enabled: bool = True
    sync_cron: str = DEFAULT_SYNC_CRON
    process_cron: str = DEFAULT_PROCESS_CRON
    timezone: str = DEFAULT_TIMEZONE
    sync_days_back: int = DEFAULT_SYNC_DAYS_BACK


def build_scheduler(timezone: str) -> BackgroundScheduler:
    return BackgroundScheduler(
        executors={"default": ThreadPoolExecutor(max_workers=1)},
        job_defaults={"coalesce": True, "max_instances": 1, "misfire_grace_time": None},
        timezone=timezone,
    )


class BiometricScheduler:
    def __init__(
        self,
        sync: SyncService,
        reconciliation: ReconciliationService,
        settings: SchedulerSettings,
        *,
        scheduler: Optional[BackgroundScheduler] = None,
    ):
        self._sync = sync
        self._reconciliation = reconciliation
        self._settings = settings
        self._scheduler = scheduler or build_scheduler(settings.timezone)
        self._scheduler.add_listener(self._on_job_error, EVENT_JOB_ERROR)
        self._scheduler.add_listener(self._on_job_missed, EVENT_JOB_MISSED)
        self._cron_registered = False

    @property
    def settings(self) -> SchedulerSettings:
        return self._settings

    @property
    def running(self) -> bool:
        return bool(self._scheduler.running)

    def run_sync_all_devices(self) -> Optional[SyncAllResult]:
        logger.info("[BiometricScheduler][Sync] Starting sync of all devices")
        try:
            result = self._sync.sync_all_devices(days=self._settings.sync_days_back)
        except Exception:
            logger.exception("[BiometricScheduler][Sync] Sync failed")
            return None

        if result.skipped_reason:
            logger.warning("[BiometricScheduler][Sync] Skipped: %s", result.skipped_reason)
        else:
            logger.info(
                "[BiometricScheduler][Sync] Done: %d device(s), %d failed, %d inserted, %d skipped",
                result.devices_attempted,
                result.devices_failed,
                result.inserted_count,
                result.skipped_count,
            )
        return result

    def run_reconciliation(self) -> Optional[ReconciliationSummary]:
        logger.info("[BiometricScheduler][Process] Starting reconciliation")
        try:
            summary = self._reconciliation.reconcile()
        except Exception:
            logger.exception("[BiometricScheduler][Process] Reconciliation failed")
            return None

        logger.info(
            "[BiometricScheduler][Process] Done %s..%s: %d logs, %d employees, %d attendance rows",
            summary.processed_from_date,
            summary.processed_to_date,
            summary.logs_marked_processed,
            summary.employees_processed,
            summary.attendance_records_touched,
        )
        return summary

    def start(self) -> None:
        """Register the cron jobs (when enabled) and start the scheduler."""
        if self._settings.enabled and not self._cron_registered:
            self._cron_registered = self._register_cron_jobs()
        elif not self._settings.enabled:
            logger.info("[BiometricScheduler] Cron jobs disabled")

        if not self._scheduler.running:
            self._scheduler.start()
            logger.info("[BiometricScheduler] Started (timezone=%s)", self._settings.timezone)

    def shutdown(self, *, wait: bool = False) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
            logger.info("[BiometricScheduler] Stopped")

    def submit_sync_all(self) -> str:
        """Queue a one-off sync of all devices and return its job id."""
        job = self._scheduler.add_job(self.run_sync_all_devices, name="biometric-sync-all-manual")
        logger.info("[BiometricScheduler][Sync] Manual sync queued as job %s", job.id)
        return job.id

    def describe(self) -> dict[str, Any]:
        return {
            "enabled": self._settings.enabled,
            "syncCron": self._settings.sync_cron,
            "processCron": self._settings.process_cron,
            "timezone": self._settings.timezone,
            "running": self.running,
            "nextSync": self._next_run(SYNC_JOB_ID),
            "nextProcess": self._next_run(PROCESS_JOB_ID),
        }

    def _register_cron_jobs(self) -> bool:
        try:
            sync_trigger = CronTrigger.from_crontab(self._settings.sync_cron, timezone=self._settings.timezone)
            process_trigger = CronTrigger.from_crontab(self._settings.process_cron, timezone=self._settings.timezone)
        except ValueError as e:
            logger.error(
                "[BiometricScheduler] Invalid cron expression (sync=%r, process=%r): %s; no cron jobs registered",
                self._settings.sync_cron,
                self._settings.process_cron,
                e,
            )
            return False

        self._scheduler.add_job(self.run_sync_all_devices, sync_trigger, id=SYNC_JOB_ID, replace_existing=True)
        self._scheduler.add_job(self.run_reconciliation, process_trigger, id=PROCESS_JOB_ID, replace_existing=True)
        logger.info(
            "[BiometricScheduler] Scheduled sync '%s' and process '%s' (%s)",
            self._settings.sync_cron,
            self._settings.process_cron,
            self._settings.timezone,
        )
        return True

    def _next_run(self, job_id: str) -> Optional[str]:
        job = self._scheduler.get_job(job_id)
        next_run = getattr(job, "next_run_time", None) if job else None
        return next_run.isoformat() if next_run else None

    @staticmethod
    def _on_job_error(event: JobExecutionEvent) -> None:
        logger.error("[BiometricScheduler] Job %s failed: %r\n%s", event.job_id, event.exception, event.traceback or "")

    @staticmethod
    def _on_job_missed(event: JobExecutionEvent) -> None:
        logger.warning("[BiometricScheduler] Job %s missed its run time (%s)", event.job_id, event.scheduled_run_time)
