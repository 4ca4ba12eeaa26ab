from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Any, NewType


EventId = NewType("EventId", str)

TITLE_COLORS = ("yellow", "green", "red", "blue")


class EventType(str, Enum):
    CLOSING = "closing"
    DUE = "due"
    PUSH = "push"

    @classmethod
    def coerce(cls, value: Any) -> "EventType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return cls.PUSH


@dataclass(frozen=True, order=True)
class DayKey:
    """Calendar day bucket key.

    Holds the raw ``YYYY-MM-DD`` text. Keys are compared and hashed by that
    text only, so a malformed value still groups like any other key.
    """

    value: str

    @classmethod
    def from_date(cls, value: date) -> "DayKey":
        return cls(value.isoformat())

    @classmethod
    def coerce(cls, value: "DayKey | date | str | None") -> "DayKey":
        if isinstance(value, DayKey):
            return value
        if isinstance(value, datetime):
            return cls.from_date(value.date())
        if isinstance(value, date):
            return cls.from_date(value)
        return cls(str(value or "").strip())

    def as_date(self) -> date | None:
        try:
            return date.fromisoformat(self.value)
        except ValueError:
            return None

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ColorStyle:
    bg: str
    text: str
    border: str
    ring: str
    light_bg: str
    label: str
    shadow: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


COLOR_STYLES: dict[str, ColorStyle] = {
    "yellow": ColorStyle(
        bg="bg-amber-500",
        text="text-amber-600",
        border="border-amber-500",
        ring="ring-amber-500",
        light_bg="bg-amber-50",
        label="Yellow",
        shadow="shadow-amber-200",
    ),
    "green": ColorStyle(
        bg="bg-green-500",
        text="text-green-600",
        border="border-green-500",
        ring="ring-green-500",
        light_bg="bg-green-50",
        label="Green",
        shadow="shadow-green-200",
    ),
    "red": ColorStyle(
        bg="bg-red-500",
        text="text-red-600",
        border="border-red-500",
        ring="ring-red-500",
        light_bg="bg-red-50",
        label="Red",
        shadow="shadow-red-200",
    ),
    "blue": ColorStyle(
        bg="bg-sky-500",
        text="text-sky-600",
        border="border-sky-500",
        ring="ring-sky-500",
        light_bg="bg-sky-50",
        label="Blue",
        shadow="shadow-sky-200",
    ),
}


def default_color_for_type(event_type: EventType | str) -> str:
    kind = EventType.coerce(event_type)
    if kind is EventType.DUE:
        return "red"
    if kind is EventType.CLOSING:
        return "yellow"
    return "blue"


def resolve_event_color_style(event_type: EventType | str, title_color: str | None = None) -> ColorStyle:
    key = str(title_color or "").strip().lower()
    if key not in COLOR_STYLES:
        key = default_color_for_type(event_type)
    return COLOR_STYLES[key]


def _parse_rank(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _parse_color(value: Any) -> str | None:
    text = str(value or "").strip().lower()
    return text if text in TITLE_COLORS else None


@dataclass(frozen=True)
class CalendarEvent:
    date: DayKey
    title: str = ""
    id: EventId = EventId("")
    rank: int | None = None
    type: EventType = EventType.PUSH
    template_id: str = ""
    content: str = ""
    title_color: str | None = None
    completed: bool = False

    def __post_init__(self) -> None:
        # Accept plain strings at construction; the stored key is always a DayKey.
        if not isinstance(self.date, DayKey):
            object.__setattr__(self, "date", DayKey.coerce(self.date))
        if not isinstance(self.type, EventType):
            object.__setattr__(self, "type", EventType.coerce(self.type))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CalendarEvent":
        rank = data.get("rank", data.get("order"))
        content = data.get("content")
        if content is None:
            content = data.get("custom_content", "")
        return cls(
            id=EventId(str(data.get("id", "") or "").strip()),
            date=DayKey.coerce(data.get("date")),
            title=str(data.get("title", "") or ""),
            rank=_parse_rank(rank),
            type=EventType.coerce(data.get("type")),
            template_id=str(data.get("template_id", "") or ""),
            content=str(content or ""),
            title_color=_parse_color(data.get("title_color")),
            completed=bool(data.get("completed", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": str(self.date),
            "title": self.title,
            "rank": self.rank,
            "type": self.type.value,
            "template_id": self.template_id,
            "content": self.content,
            "title_color": self.title_color,
            "completed": self.completed,
        }

    def with_updates(self, **kwargs: Any) -> "CalendarEvent":
        return replace(self, **kwargs)

    @property
    def color_style(self) -> ColorStyle:
        return resolve_event_color_style(self.type, self.title_color)


@dataclass
class Template:
    type: EventType
    title: str
    content: str
    id: str = ""
    title_color: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Template":
        return cls(
            id=str(data.get("id", "") or "").strip(),
            type=EventType.coerce(data.get("type")),
            title=str(data.get("title", "") or "").strip(),
            content=str(data.get("content", "") or "").strip(),
            title_color=_parse_color(data.get("title_color")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "title": self.title,
            "content": self.content,
            "title_color": self.title_color,
        }


@dataclass
class MoveResult:
    updated: list[CalendarEvent]
    changed: list[CalendarEvent]
    moved: bool = True


@dataclass
class BoardConfig:
    first_weekday: int = 6
    timezone: str = "UTC"

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "BoardConfig":
        data = data or {}
        try:
            first_weekday = int(data.get("first_weekday", 6))
        except (TypeError, ValueError):
            first_weekday = 6
        if first_weekday not in range(7):
            first_weekday = 6
        return cls(
            first_weekday=first_weekday,
            timezone=str(data.get("timezone", "UTC")).strip() or "UTC",
        )


@dataclass
class TemplatesConfig:
    seed_defaults: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "TemplatesConfig":
        data = data or {}
        return cls(seed_defaults=bool(data.get("seed_defaults", True)))


@dataclass
class StorageConfig:
    write_workers: int = 4

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "StorageConfig":
        data = data or {}
        try:
            write_workers = int(data.get("write_workers", 4))
        except (TypeError, ValueError):
            write_workers = 4
        return cls(write_workers=max(1, write_workers))


@dataclass
class AppConfig:
    board: BoardConfig = field(default_factory=BoardConfig)
    templates: TemplatesConfig = field(default_factory=TemplatesConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "AppConfig":
        data = data or {}
        return cls(
            board=BoardConfig.from_dict(data.get("board")),
            templates=TemplatesConfig.from_dict(data.get("templates")),
            storage=StorageConfig.from_dict(data.get("storage")),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def default_app_config() -> AppConfig:
    return AppConfig()
