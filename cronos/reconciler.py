from __future__ import annotations

import unicodedata
from datetime import date
from typing import Iterable

from cronos.models import CalendarEvent, DayKey, MoveResult


def title_sort_key(title: str | None) -> tuple[str, str]:
    """Collation key approximating a locale-aware compare.

    Accents and case are ignored on the first pass ("Éclair" sorts next to
    "eclair"); the raw text breaks the remaining ties so the order stays total.
    """
    text = title or ""
    decomposed = unicodedata.normalize("NFKD", text)
    folded = "".join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold()
    return folded, text


def day_sort_key(event: CalendarEvent) -> tuple[int, tuple[str, str]]:
    return (event.rank or 0, title_sort_key(event.title))


def compare_events(left: CalendarEvent, right: CalendarEvent) -> int:
    left_key = day_sort_key(left)
    right_key = day_sort_key(right)
    if left_key < right_key:
        return -1
    if left_key > right_key:
        return 1
    return 0


def sort_day_events(events: Iterable[CalendarEvent]) -> list[CalendarEvent]:
    return sorted(events, key=day_sort_key)


def group_by_day(events: Iterable[CalendarEvent]) -> dict[DayKey, list[CalendarEvent]]:
    buckets: dict[DayKey, list[CalendarEvent]] = {}
    for event in events:
        buckets.setdefault(event.date, []).append(event)
    return buckets


def _rerank(events: list[CalendarEvent], day: DayKey) -> list[CalendarEvent]:
    output: list[CalendarEvent] = []
    for index, event in enumerate(events):
        if event.rank == index and event.date == day:
            output.append(event)
        else:
            output.append(event.with_updates(rank=index, date=day))
    return output


def normalize_events(events: Iterable[CalendarEvent]) -> list[CalendarEvent]:
    normalized: list[CalendarEvent] = []
    for day, bucket in group_by_day(events).items():
        normalized.extend(_rerank(sort_day_events(bucket), day))
    return normalized


def clamp_index(index: int, size: int) -> int:
    return max(0, min(int(index), size))


def _replaced(reranked: list[CalendarEvent], events: list[CalendarEvent]) -> list[CalendarEvent]:
    # _rerank hands back the same object when neither date nor rank moved.
    untouched = {id(event) for event in events}
    return [event for event in reranked if id(event) not in untouched]


def reorder_events(
    events: list[CalendarEvent],
    event_id: str,
    target_date: DayKey | date | str,
    target_index: int,
) -> MoveResult:
    """Move one event to ``target_index`` inside ``target_date``.

    Both affected buckets are re-ranked densely from 0. ``changed`` holds only
    the records whose date or rank differ from the input, which is the exact
    set the caller has to write back. An unknown ``event_id`` is a no-op.
    """
    moving = next((event for event in events if event.id == event_id), None) if event_id else None
    if moving is None:
        return MoveResult(updated=list(events), changed=[], moved=False)

    target_day = DayKey.coerce(target_date)
    source_day = moving.date

    target_siblings = sort_day_events(
        event for event in events if event.date == target_day and event.id != event_id
    )
    position = clamp_index(target_index, len(target_siblings))

    if source_day == target_day:
        target_siblings.insert(position, moving)
        reranked_target = _rerank(target_siblings, target_day)
        others = [event for event in events if event.date != source_day]
        return MoveResult(updated=others + reranked_target, changed=_replaced(reranked_target, events))

    source_siblings = sort_day_events(
        event for event in events if event.date == source_day and event.id != event_id
    )
    target_siblings.insert(position, moving.with_updates(date=target_day))
    reranked_source = _rerank(source_siblings, source_day)
    reranked_target = _rerank(target_siblings, target_day)
    others = [event for event in events if event.date not in (source_day, target_day)]
    changed = _replaced(reranked_source + reranked_target, events)
    return MoveResult(updated=others + reranked_source + reranked_target, changed=changed)
