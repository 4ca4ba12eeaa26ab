from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from cronos.calendar_grid import DayCell, day_events, month_grid
from cronos.config_manager import ConfigManager
from cronos.models import CalendarEvent, DayKey, Template
from cronos.reconciler import normalize_events, reorder_events
from cronos.state_store import StateStore
from cronos.templates import (
    DEFAULT_TEMPLATES,
    event_from_template,
    parse_template,
    toggle_completed,
)

logger = logging.getLogger(__name__)


class BoardError(Exception):
    pass


class EventNotFoundError(BoardError, LookupError):
    pass


class TemplateNotFoundError(BoardError, LookupError):
    pass


@dataclass
class MoveOutcome:
    moved: bool
    events: list[CalendarEvent]
    changed: list[CalendarEvent]
    failed_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "moved": self.moved,
            "events": [event.to_dict() for event in self.events],
            "changed": [event.to_dict() for event in self.changed],
            "failed_ids": list(self.failed_ids),
        }


def _seeded_meta_key(user_id: str) -> str:
    return f"templates_seeded:{user_id}"


class BoardService:
    def __init__(self, config_manager: ConfigManager, state_store: StateStore) -> None:
        self.config_manager = config_manager
        self.state_store = state_store
        self._locks_guard = threading.Lock()
        self._user_locks: dict[str, threading.RLock] = {}

    def _user_lock(self, user_id: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._user_locks.get(user_id)
            if lock is None:
                lock = threading.RLock()
                self._user_locks[user_id] = lock
            return lock

    def load_events(self, user_id: str) -> list[CalendarEvent]:
        return normalize_events(self.state_store.list_events(user_id))

    def _load_with_repairs(self, user_id: str) -> tuple[list[CalendarEvent], list[CalendarEvent]]:
        """Normalized collection plus the records whose stored rank was stale."""
        stored = self.state_store.list_events(user_id)
        normalized = normalize_events(stored)
        untouched = {id(event) for event in stored}
        return normalized, [event for event in normalized if id(event) not in untouched]

    def _persist(self, user_id: str, events: list[CalendarEvent]) -> list[str]:
        """Write each record independently; returns ids whose write failed."""
        if not events:
            return []
        workers = min(self.config_manager.load().storage.write_workers, len(events))
        failed: list[str] = []
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="cronos-write") as pool:
            futures = {pool.submit(self.state_store.upsert_event, user_id, event): event for event in events}
            for future, event in futures.items():
                try:
                    future.result()
                except Exception:
                    logger.exception("failed to persist event %s for user %s", event.id, user_id)
                    failed.append(event.id)
        return failed

    def _audit(self, user_id: str, event_id: str, action: str, details: dict[str, Any]) -> None:
        try:
            self.state_store.record_audit_event(
                user_id=user_id, event_id=event_id, action=action, details=details
            )
        except Exception:
            logger.exception("failed to record %s audit entry for event %s", action, event_id)

    def move_event(
        self,
        user_id: str,
        event_id: str,
        target_date: DayKey | date | str,
        target_index: int,
    ) -> MoveOutcome:
        with self._user_lock(user_id):
            current, repairs = self._load_with_repairs(user_id)
            result = reorder_events(current, event_id, target_date, target_index)
            if not result.moved:
                logger.info("move ignored, event %s not found for user %s", event_id, user_id)
                return MoveOutcome(moved=False, events=result.updated, changed=[])

            writes = {event.id: event for event in repairs}
            writes.update((event.id, event) for event in result.changed)
            failed = self._persist(user_id, list(writes.values()))
            self._audit(
                user_id,
                event_id,
                "event_moved",
                {
                    "target_date": str(DayKey.coerce(target_date)),
                    "target_index": int(target_index),
                    "changed_ids": [event.id for event in result.changed],
                    "failed_ids": failed,
                },
            )
            logger.info(
                "moved event %s to %s[%s]: %d changed, %d failed",
                event_id,
                DayKey.coerce(target_date),
                target_index,
                len(result.changed),
                len(failed),
            )
            return MoveOutcome(moved=True, events=result.updated, changed=result.changed, failed_ids=failed)

    def add_event_from_template(
        self,
        user_id: str,
        template_id: str,
        day: DayKey | date | str,
    ) -> CalendarEvent:
        template = self.state_store.get_template(user_id, template_id)
        if template is None:
            raise TemplateNotFoundError(f"template not found: {template_id}")
        with self._user_lock(user_id):
            current = self.load_events(user_id)
            saved = self.state_store.upsert_event(user_id, event_from_template(template, day, current))
        self._audit(
            user_id,
            saved.id,
            "event_created",
            {"template_id": template.id, "date": str(saved.date), "rank": saved.rank},
        )
        return saved

    def toggle_completed(self, user_id: str, event_id: str) -> CalendarEvent:
        with self._user_lock(user_id):
            event = self.state_store.get_event(user_id, event_id)
            if event is None:
                raise EventNotFoundError(f"event not found: {event_id}")
            saved = self.state_store.upsert_event(user_id, toggle_completed(event))
        self._audit(
            user_id,
            event_id,
            "event_completed" if saved.completed else "event_reopened",
            {},
        )
        return saved

    def delete_event(self, user_id: str, event_id: str) -> list[CalendarEvent]:
        """Delete one event and close the gap it leaves in its day."""
        with self._user_lock(user_id):
            event = self.state_store.get_event(user_id, event_id)
            if event is None:
                raise EventNotFoundError(f"event not found: {event_id}")
            self.state_store.delete_event(user_id, event_id)
            remaining, repairs = self._load_with_repairs(user_id)
            self._persist(user_id, repairs)
        self._audit(
            user_id,
            event_id,
            "event_deleted",
            {"date": str(event.date), "title": event.title},
        )
        return remaining

    def list_templates(self, user_id: str) -> list[Template]:
        templates = self.state_store.list_templates(user_id)
        if templates:
            return templates
        config = self.config_manager.load()
        if not config.templates.seed_defaults or self.state_store.get_meta(_seeded_meta_key(user_id)):
            return []
        for seed in DEFAULT_TEMPLATES:
            self.state_store.upsert_template(user_id, Template.from_dict(seed.to_dict()))
        self.state_store.set_meta(_seeded_meta_key(user_id), "1")
        logger.info("seeded %d default templates for user %s", len(DEFAULT_TEMPLATES), user_id)
        return self.state_store.list_templates(user_id)

    def save_template(self, user_id: str, payload: dict[str, Any]) -> Template:
        template = parse_template(payload)
        if template.id and self.state_store.get_template(user_id, template.id) is None:
            raise TemplateNotFoundError(f"template not found: {template.id}")
        return self.state_store.upsert_template(user_id, template)

    def delete_template(self, user_id: str, template_id: str) -> None:
        if not self.state_store.delete_template(user_id, template_id):
            raise TemplateNotFoundError(f"template not found: {template_id}")

    def today(self) -> date:
        tz_name = self.config_manager.load().board.timezone
        try:
            return datetime.now(ZoneInfo(tz_name)).date()
        except ZoneInfoNotFoundError:
            logger.warning("unknown board timezone %s, falling back to UTC", tz_name)
            return datetime.now(ZoneInfo("UTC")).date()

    def month_view(self, user_id: str, year: int, month: int) -> list[DayCell]:
        config = self.config_manager.load()
        return month_grid(
            year,
            month,
            self.load_events(user_id),
            first_weekday=config.board.first_weekday,
            today=self.today(),
        )

    def day_view(self, user_id: str, day: DayKey | date | str) -> list[CalendarEvent]:
        return day_events(self.load_events(user_id), day)
