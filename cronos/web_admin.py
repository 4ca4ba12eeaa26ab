from __future__ import annotations

import calendar
import logging
import os
from typing import Any

from fastapi import FastAPI, Header, HTTPException
from pydantic import BaseModel, Field

from cronos.board import BoardService, EventNotFoundError, TemplateNotFoundError
from cronos.calendar_grid import month_title, shift_month
from cronos.config_manager import ConfigManager
from cronos.models import DayKey
from cronos.state_store import StateStore
from cronos.templates import TemplateValidationError

logger = logging.getLogger(__name__)

DEFAULT_USER = "default"


class ConfigUpdateRequest(BaseModel):
    payload: dict[str, Any] = Field(default_factory=dict)


class EventCreateRequest(BaseModel):
    template_id: str = Field(min_length=1)
    date: str = Field(min_length=1)


class EventMoveRequest(BaseModel):
    target_date: str = Field(min_length=1)
    target_index: int = 0


class TemplateSaveRequest(BaseModel):
    id: str = ""
    type: str
    title: str = ""
    content: str = ""
    title_color: str | None = None


class AppContext:
    def __init__(self, config_path: str, state_path: str) -> None:
        self.config_manager = ConfigManager(config_path)
        self.state_store = StateStore(state_path)
        self.board = BoardService(self.config_manager, self.state_store)


def _user(value: str | None) -> str:
    return str(value or "").strip() or DEFAULT_USER


def create_app() -> FastAPI:
    config_path = os.getenv("CRONOS_CONFIG_PATH", "config.yaml")
    state_path = os.getenv("CRONOS_STATE_PATH", "data/state.db")
    context = AppContext(config_path=config_path, state_path=state_path)

    app = FastAPI(title="Cronos Board", version="0.1.0")
    app.state.context = context

    @app.get("/healthz")
    def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/config")
    def get_config() -> dict[str, Any]:
        return app.state.context.config_manager.load().to_dict()

    @app.put("/api/config")
    def put_config(request: ConfigUpdateRequest) -> dict[str, Any]:
        try:
            updated = app.state.context.config_manager.update(request.payload)
        except (TypeError, ValueError, AttributeError) as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return {"message": "config updated", "config": updated.to_dict()}

    @app.get("/api/events")
    def list_events(x_board_user: str | None = Header(default=None)) -> dict[str, Any]:
        events = app.state.context.board.load_events(_user(x_board_user))
        return {"events": [event.to_dict() for event in events]}

    @app.post("/api/events")
    def create_event(
        request: EventCreateRequest,
        x_board_user: str | None = Header(default=None),
    ) -> dict[str, Any]:
        try:
            saved = app.state.context.board.add_event_from_template(
                _user(x_board_user), request.template_id, request.date
            )
        except TemplateNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return {"event": saved.to_dict()}

    @app.post("/api/events/{event_id}/move")
    def move_event(
        event_id: str,
        request: EventMoveRequest,
        x_board_user: str | None = Header(default=None),
    ) -> dict[str, Any]:
        outcome = app.state.context.board.move_event(
            _user(x_board_user), event_id, request.target_date, request.target_index
        )
        return outcome.to_dict()

    @app.post("/api/events/{event_id}/toggle")
    def toggle_event(event_id: str, x_board_user: str | None = Header(default=None)) -> dict[str, Any]:
        try:
            saved = app.state.context.board.toggle_completed(_user(x_board_user), event_id)
        except EventNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return {"event": saved.to_dict()}

    @app.delete("/api/events/{event_id}")
    def delete_event(event_id: str, x_board_user: str | None = Header(default=None)) -> dict[str, Any]:
        try:
            remaining = app.state.context.board.delete_event(_user(x_board_user), event_id)
        except EventNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return {"message": "event deleted", "events": [event.to_dict() for event in remaining]}

    @app.get("/api/templates")
    def list_templates(x_board_user: str | None = Header(default=None)) -> dict[str, Any]:
        templates = app.state.context.board.list_templates(_user(x_board_user))
        return {"templates": [template.to_dict() for template in templates]}

    @app.post("/api/templates")
    def save_template(
        request: TemplateSaveRequest,
        x_board_user: str | None = Header(default=None),
    ) -> dict[str, Any]:
        try:
            saved = app.state.context.board.save_template(_user(x_board_user), request.model_dump())
        except TemplateValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except TemplateNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return {"template": saved.to_dict()}

    @app.delete("/api/templates/{template_id}")
    def delete_template(template_id: str, x_board_user: str | None = Header(default=None)) -> dict[str, str]:
        try:
            app.state.context.board.delete_template(_user(x_board_user), template_id)
        except TemplateNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return {"message": "template deleted"}

    @app.get("/api/calendar/{year}/{month}")
    def calendar_month(year: int, month: int, x_board_user: str | None = Header(default=None)) -> dict[str, Any]:
        if month < 1 or month > 12:
            raise HTTPException(status_code=400, detail="month must be between 1 and 12")
        cells = app.state.context.board.month_view(_user(x_board_user), year, month)
        previous = shift_month(year, month, -1)
        following = shift_month(year, month, 1)
        return {
            "title": month_title(year, month),
            "previous": {"year": previous[0], "month": previous[1]},
            "next": {"year": following[0], "month": following[1]},
            "cells": [cell.to_dict() for cell in cells],
        }

    @app.get("/api/days/{day}")
    def day_detail(day: str, x_board_user: str | None = Header(default=None)) -> dict[str, Any]:
        key = DayKey.coerce(day)
        parsed = key.as_date()
        events = app.state.context.board.day_view(_user(x_board_user), key)
        return {
            "day": str(key),
            "weekday": calendar.day_name[parsed.weekday()] if parsed else None,
            "events": [event.to_dict() for event in events],
        }

    @app.get("/api/audit/events")
    def audit_events(limit: int = 100, x_board_user: str | None = Header(default=None)) -> dict[str, Any]:
        return {"events": app.state.context.state_store.recent_audit_events(_user(x_board_user), limit=limit)}

    logger.info("cronos board ready (config=%s, state=%s)", config_path, state_path)
    return app
