from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Callable, Optional, Sequence

from ..common.datetime_utils import now_local
from ..core.constants import DEFAULT_RECONCILE_DAYS
from ..core.exceptions import ValidationError
from .engine import group_punches, merge_day
from .model import MappedPunch, ReconciliationSummary
from .repository import ReconciliationRepository

logger = logging.getLogger(__name__)


def _one_owner_per_punch(punches: Sequence[MappedPunch]) -> list[MappedPunch]:
    """Keep the first employee for each punch.

    A biometric id shared by several active employees yields one row per
    employee; punches arrive ordered by employee id, so the lowest id wins.
    """
    owners: dict[int, MappedPunch] = {}
    for p in punches:
        kept = owners.setdefault(p.punch_id, p)
        if kept is not p:
            logger.warning(
                "Biometric id %s maps to employees %s and %s; punch %s credited to %s",
                p.biometric_user_id,
                kept.employee_id,
                p.employee_id,
                p.punch_id,
                kept.employee_id,
            )
    return list(owners.values())


class ReconciliationService:
    """Turn unprocessed punches into daily attendance rows.

    Select, merge and mark-processed run in one transaction. Only unprocessed
    punches are selected, so re-running over the same window is a no-op.
    """

    def __init__(
        self,
        store: ReconciliationRepository,
        *,
        default_days: int = DEFAULT_RECONCILE_DAYS,
        clock: Callable[[], datetime] = now_local,
    ):
        self._store = store
        self._default_days = int(default_days)
        self._clock = clock

    def default_window(self) -> tuple[date, date]:
        today = self._clock().date()
        return today - timedelta(days=self._default_days), today

    def reconcile(
        self,
        *,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        device_id: Optional[str] = None,
    ) -> ReconciliationSummary:
        default_start, default_end = self.default_window()
        start = start_date or default_start
        end = end_date or default_end
        if start > end:
            raise ValidationError("startDate must be on or before endDate")

        device_id = str(device_id).strip() if device_id is not None and str(device_id).strip() else None

        with self._store.session() as session:
            punches = _one_owner_per_punch(session.select_pending(start_date=start, end_date=end, device_id=device_id))
            summaries = group_punches(punches)

            existing = session.get_attendance([s.key for s in summaries])
            inserted = 0
            for s in summaries:
                merged = merge_day(existing.get(s.key), s)
                if merged.is_new:
                    session.insert_attendance(merged)
                    inserted += 1
                else:
                    session.update_attendance(merged)

            marked = session.mark_processed([p.punch_id for p in punches]) if punches else 0

        if marked != len(punches):
            logger.warning("Selected %d punches but marked %d processed (%s..%s)", len(punches), marked, start, end)

        summary = ReconciliationSummary(
            processed_from_date=start,
            processed_to_date=end,
            logs_marked_processed=marked,
            employees_processed=len({s.employee_id for s in summaries}),
            attendance_records_touched=len(summaries),
            processed_at=self._clock(),
        )
        logger.info(
            "Reconciled %s..%s: %d punches, %d employees, %d attendance rows (%d new)",
            start,
            end,
            summary.logs_marked_processed,
            summary.employees_processed,
            summary.attendance_records_touched,
            inserted,
        )
        return summary
