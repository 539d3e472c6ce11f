"""Pydantic request/response models for API endpoints."""

from typing import Any

from pydantic import BaseModel


class CreateCharacter(BaseModel):
    name: str = "New Character"
    level: int | None = None
    subtitle: str | None = None
    platform: str | None = None
    imageUrl: str | None = None
    characterData: dict[str, Any] | None = None


class StorageValue(BaseModel):
    value: str


class FieldValue(BaseModel):
    value: Any


class TrackerState(BaseModel):
    current: int | None = None
    max: int | None = None
    circles: list[dict[str, Any]] | None = None
