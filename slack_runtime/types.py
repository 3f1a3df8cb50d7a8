"""
Pydantic models for the Slack runtime client.

Entities (users, channels, groups, ...) are kept as plain dicts and passed
through untouched; only configuration and the envelopes the client itself
reads are modelled here.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

from slack_runtime.methods import DEFAULT_METHODS

Entity = dict[str, Any]


# ============================================================
#  Configuration
# ============================================================


class ReconnectConfig(BaseModel):
    """WebSocket reconnection settings."""

    max_retries: int = 10
    initial_delay_ms: int = 1000
    max_delay_ms: int = 30000

    def delay_for(self, attempt: int) -> float:
        """Back-off delay in seconds before redial number ``attempt`` (0-based)."""
        delay_ms = min(self.initial_delay_ms * (2 ** attempt), self.max_delay_ms)
        return delay_ms / 1000.0


class ClientConfig(BaseModel):
    """Configuration for a :class:`~slack_runtime.client.SlackClient`."""

    token: str
    base_url: str = "https://slack.com/api/"
    methods: list[str] = Field(default_factory=lambda: list(DEFAULT_METHODS))
    prefix: str | None = None
    timeout: float = 30.0
    reconnect: ReconnectConfig = Field(default_factory=ReconnectConfig)

    @field_validator("base_url")
    @classmethod
    def _trailing_slash(cls, value: str) -> str:
        return value if value.endswith("/") else value + "/"


# ============================================================
#  Responses
# ============================================================


class OrgData(BaseModel):
    """Initial snapshot delivered by ``rtm.start``."""

    self_: Entity | None = Field(None, alias="self")
    team: Entity | None = None
    users: list[Entity] = []
    channels: list[Entity] = []
    groups: list[Entity] = []
    mpims: list[Entity] = []
    ims: list[Entity] = []
    bots: list[Entity] = []

    model_config = {"populate_by_name": True}


class RTMStartResult(OrgData):
    """Full ``rtm.start`` body: the snapshot plus the socket URL."""

    url: str

    def snapshot(self) -> OrgData:
        return OrgData.model_validate(self.model_dump(by_alias=True, exclude={"url"}))


class AuthIdentity(BaseModel):
    """Identity fields of an ``auth.test`` response."""

    user: str | None = None
    user_id: str | None = None
    team: str | None = None
    team_id: str | None = None
    url: str | None = None

    def self_entity(self) -> Entity:
        return {"id": self.user_id, "name": self.user}

    def team_entity(self) -> Entity:
        return {"id": self.team_id, "name": self.team}
