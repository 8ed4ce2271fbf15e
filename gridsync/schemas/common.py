from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class StatusResponse(BaseModel):
    success: bool = True


class StateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    grid: dict[str, dict[str, Any]]
    clues: dict[str, dict[str, str]]
    client_count: int = Field(alias="clientCount")
    user_presence: list[dict[str, Any]] = Field(alias="userPresence")


class UpdatesResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    updates: list[dict[str, Any]]
    live_client_count: int = Field(alias="liveClientCount")
