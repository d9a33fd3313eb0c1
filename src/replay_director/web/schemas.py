"""Pydantic request/response schemas for the Web API."""

from __future__ import annotations

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    version: str


class StatusResponse(BaseModel):
    state: str
    progress: int
    status_message: str
    event_count: int
    action_count: int


class ScanRequest(BaseModel):
    start_frame: int | None = None
    end_frame: int | None = None


class EventRecord(BaseModel):
    frame: int
    event_type: str
    primary_car: int
    secondary_car: int | None = None
    position: int | None = None
    importance: int
    duration_frames: int
    description: str


class EventsResponse(BaseModel):
    track_name: str
    session_type: str
    events: list[EventRecord]


class ActionRecord(BaseModel):
    frame: int
    camera_name: str
    car_number: int | None = None
    reason: str = ""


class PlanResponse(BaseModel):
    generated_by: str
    generated_at: str
    total_duration_frames: int
    actions: list[ActionRecord]


class CommandRecord(BaseModel):
    frame: int
    car_number: int | None
    camera_group: int
    camera_name: str


class ApplyResponse(BaseModel):
    applied: int
    commands: list[CommandRecord]
