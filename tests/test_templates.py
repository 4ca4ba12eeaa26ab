import unittest

from cronos.models import CalendarEvent, EventType, Template
from cronos.templates import (
    DEFAULT_TEMPLATES,
    TemplateValidationError,
    event_from_template,
    parse_template,
    toggle_completed,
    validate_template,
)


class TemplateTests(unittest.TestCase):
    def test_defaults_cover_every_type(self) -> None:
        self.assertEqual({template.type for template in DEFAULT_TEMPLATES}, set(EventType))
        for template in DEFAULT_TEMPLATES:
            validate_template(template)

    def test_validate_rejects_blank_fields(self) -> None:
        with self.assertRaises(TemplateValidationError) as ctx:
            validate_template(Template(type=EventType.DUE, title=" ", content=""))
        self.assertIn("title", str(ctx.exception))
        self.assertIn("content", str(ctx.exception))

    def test_parse_rejects_unknown_type(self) -> None:
        with self.assertRaises(TemplateValidationError):
            parse_template({"type": "memo", "title": "T", "content": "C"})
        with self.assertRaises(ValueError):
            parse_template({"title": "T", "content": "C"})

    def test_parse_valid_payload(self) -> None:
        template = parse_template({"type": "Closing", "title": "T", "content": "C", "id": "tpl-1"})
        self.assertEqual(template.type, EventType.CLOSING)
        self.assertEqual(template.id, "tpl-1")

    def test_event_from_template_appends_to_day(self) -> None:
        template = Template(id="tpl-1", type=EventType.DUE, title="Due", content="Pay now")
        events = [
            CalendarEvent(id="a", date="2024-05-01", rank=0),
            CalendarEvent(id="b", date="2024-05-01", rank=1),
            CalendarEvent(id="c", date="2024-05-02", rank=0),
        ]
        event = event_from_template(template, "2024-05-01", events)
        self.assertEqual(event.id, "")
        self.assertEqual(event.rank, 2)
        self.assertEqual(event.title_color, "red")
        self.assertEqual(event.template_id, "tpl-1")
        self.assertEqual(event.content, "Pay now")
        self.assertFalse(event.completed)

    def test_event_from_template_keeps_custom_color(self) -> None:
        template = Template(type=EventType.DUE, title="Due", content="Pay", title_color="green")
        self.assertEqual(event_from_template(template, "2024-05-01", []).title_color, "green")

    def test_toggle_completed(self) -> None:
        event = CalendarEvent(id="a", date="2024-05-01")
        done = toggle_completed(event)
        self.assertTrue(done.completed)
        self.assertFalse(toggle_completed(done).completed)
        self.assertFalse(event.completed)


if __name__ == "__main__":
    unittest.main()
