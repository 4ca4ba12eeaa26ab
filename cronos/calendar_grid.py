from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Iterable

from cronos.models import CalendarEvent, ColorStyle, DayKey
from cronos.reconciler import group_by_day, sort_day_events


GRID_CELLS = 42


@dataclass
class DayCell:
    day: DayKey
    in_month: bool
    events: list[CalendarEvent] = field(default_factory=list)
    is_today: bool = False

    @property
    def accent(self) -> ColorStyle | None:
        for event in self.events:
            if not event.completed:
                return event.color_style
        return None

    def to_dict(self) -> dict[str, Any]:
        accent = self.accent
        return {
            "day": str(self.day),
            "in_month": self.in_month,
            "is_today": self.is_today,
            "accent": accent.to_dict() if accent else None,
            "events": [event.to_dict() for event in self.events],
        }


def shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def day_events(events: Iterable[CalendarEvent], day: DayKey | date | str) -> list[CalendarEvent]:
    key = DayKey.coerce(day)
    return sort_day_events(event for event in events if event.date == key)


def month_grid(
    year: int,
    month: int,
    events: Iterable[CalendarEvent] = (),
    *,
    first_weekday: int = 6,
    today: date | None = None,
) -> list[DayCell]:
    """Six full weeks around ``month``, padded with neighbouring days."""
    if month < 1 or month > 12:
        raise ValueError(f"month out of range: {month}")
    first = date(year, month, 1)
    # date.weekday(): Monday=0 .. Sunday=6
    lead = (first.weekday() - first_weekday) % 7
    start = first - timedelta(days=lead)
    buckets = group_by_day(events)

    cells: list[DayCell] = []
    for offset in range(GRID_CELLS):
        current = start + timedelta(days=offset)
        key = DayKey.from_date(current)
        cells.append(
            DayCell(
                day=key,
                in_month=current.month == month and current.year == year,
                events=sort_day_events(buckets.get(key, [])),
                is_today=today is not None and current == today,
            )
        )
    return cells


def month_title(year: int, month: int) -> str:
    return f"{calendar.month_name[month]} {year}"
