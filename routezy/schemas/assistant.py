"""Schémas assistant et géocodage / Assistant and geocoding schemas."""

from typing import Literal

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str = Field(min_length=1, max_length=8000)


class ChatRequest(BaseModel):
    messages: list[ChatMessage] = Field(min_length=1)


class ChatResponse(BaseModel):
    reply: str


class ForecastResponse(BaseModel):
    metrics: dict
    forecast: str


class AddressSuggestion(BaseModel):
    display_name: str
    lat: float
    lng: float
    city: str | None = None
    pincode: str | None = None
