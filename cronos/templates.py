from __future__ import annotations

from datetime import date
from typing import Any, Iterable

from cronos.models import CalendarEvent, DayKey, EventId, EventType, Template, default_color_for_type


DEFAULT_TEMPLATES = (
    Template(
        type=EventType.CLOSING,
        title="Standard closing",
        content="Your invoice closes today, plan your credit limit.",
    ),
    Template(
        type=EventType.DUE,
        title="Urgent due date",
        content="Your invoice is due today! Avoid interest charges.",
    ),
    Template(
        type=EventType.PUSH,
        title="Coming soon",
        content="Get ready! Something new is arriving shortly.",
    ),
)


class TemplateValidationError(ValueError):
    pass


def validate_template(template: Template) -> Template:
    missing = [name for name in ("title", "content") if not str(getattr(template, name) or "").strip()]
    if missing:
        raise TemplateValidationError(f"template missing required fields: {', '.join(missing)}")
    return template


def parse_template(payload: dict[str, Any]) -> Template:
    raw_type = str(payload.get("type", "") or "").strip().lower()
    if raw_type not in {kind.value for kind in EventType}:
        raise TemplateValidationError(f"unknown template type: {raw_type or '<empty>'}")
    return validate_template(Template.from_dict(payload))


def event_from_template(
    template: Template,
    day: DayKey | date | str,
    events: Iterable[CalendarEvent],
) -> CalendarEvent:
    key = DayKey.coerce(day)
    bucket_size = sum(1 for event in events if event.date == key)
    return CalendarEvent(
        id=EventId(""),
        date=key,
        type=template.type,
        title=template.title,
        template_id=template.id,
        content=template.content,
        title_color=template.title_color or default_color_for_type(template.type),
        rank=bucket_size,
        completed=False,
    )


def toggle_completed(event: CalendarEvent) -> CalendarEvent:
    return event.with_updates(completed=not event.completed)
