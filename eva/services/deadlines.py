"""Daily scan for upcoming court dates."""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from eva.config import AssistantConfig
from eva.models.notifications import EventType, NotificationEvent, NotificationOutcome
from eva.services.notifications import NotificationEngine
from eva.storage.base import DataStore, Query
from eva.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class DeadlineScanResult:
    total: int = 0
    processed: int = 0
    skipped: int = 0


class DeadlineScanner:
    """Emits one `upcoming_deadline` event per active matter with a near court date.

    A matter that already produced a proactive deadline log today is skipped,
    so running the scan twice a day does not notify the same client twice.
    """

    def __init__(self, store: DataStore, engine: NotificationEngine, config: AssistantConfig):
        self.store = store
        self.engine = engine
        self.warning_days = config.deadline_warning_days

    async def _notified_today(self, today_start: datetime) -> set[str]:
        logs = await self.store.select(
            "ai_messages",
            Query()
            .select("metadata")
            .eq("source_type", "proactive")
            .eq("role", "assistant")
            .gte("created_at", today_start.isoformat()),
        )
        notified = set()
        for log in logs:
            metadata = log.get("metadata") or {}
            if metadata.get("event_type") == EventType.UPCOMING_DEADLINE and metadata.get("matter_id"):
                notified.add(metadata["matter_id"])
        return notified

    async def run(self, now: datetime | None = None) -> DeadlineScanResult:
        """Scan all firms and hand due matters to the notification engine."""
        now = now or datetime.now(UTC)
        today = now.date()
        threshold = today + timedelta(days=self.warning_days)

        matters = await self.store.select(
            "matters",
            Query()
            .select("id, title, law_firm_id, next_court_date, status")
            .gte("next_court_date", today.isoformat())
            .lte("next_court_date", threshold.isoformat())
            .eq("status", "active"),
        )
        result = DeadlineScanResult(total=len(matters))
        if not matters:
            return result

        today_start = datetime(today.year, today.month, today.day, tzinfo=UTC)
        already_notified = await self._notified_today(today_start)

        for matter in matters:
            if matter["id"] in already_notified:
                result.skipped += 1
                continue

            outcome = await self.engine.process(
                NotificationEvent(
                    event_type=EventType.UPCOMING_DEADLINE,
                    law_firm_id=matter["law_firm_id"],
                    matter_id=matter["id"],
                    metadata={"matter_title": matter.get("title"), "next_court_date": matter.get("next_court_date")},
                )
            )
            if outcome.outcome is NotificationOutcome.FAILED:
                logger.warning(f"Deadline notification failed for matter {matter['id']}: {outcome.reason}")
                result.skipped += 1
            else:
                result.processed += 1

        logger.info(f"Deadline scan: {result.total} matters, {result.processed} processed, {result.skipped} skipped")
        return result
