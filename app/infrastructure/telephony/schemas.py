"""Pydantic models for RingCentral call-log payloads.

The same record shape arrives in call-log webhook notifications and in
call-log REST responses.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

CALL_LOG_EVENT_SUFFIX = "/call-log"


class CallParty(BaseModel):
    """One side of a call."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    phone_number: str | None = Field(default=None, alias="phoneNumber")
    name: str | None = None


class CallRecording(BaseModel):
    """Recording attached to a call-log record."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str | None = None
    uri: str | None = None
    content_uri: str | None = Field(default=None, alias="contentUri")

    @property
    def url(self) -> str | None:
        return self.content_uri or self.uri


class CallLogRecord(BaseModel):
    """A single call-log record."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str | None = None
    session_id: str | None = Field(default=None, alias="sessionId")
    direction: str | None = None
    result: str | None = None
    duration: int | None = None
    start_time: str | None = Field(default=None, alias="startTime")
    from_: CallParty | None = Field(default=None, alias="from")
    to: CallParty | None = None
    from_number: str | None = Field(default=None, alias="fromNumber")
    to_number: str | None = Field(default=None, alias="toNumber")
    recording: CallRecording | None = None
    recording_url: str | None = Field(default=None, alias="recordingUrl")

    @field_validator("id", "session_id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, int):
            return str(value)
        return value

    @field_validator("duration", mode="before")
    @classmethod
    def _clamp_duration(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and value < 0:
            return 0
        return value

    @property
    def raw_from_number(self) -> str | None:
        return (self.from_.phone_number if self.from_ else None) or self.from_number

    @property
    def raw_to_number(self) -> str | None:
        return (self.to.phone_number if self.to else None) or self.to_number

    @property
    def resolved_recording_url(self) -> str | None:
        return (self.recording.url if self.recording else None) or self.recording_url


class CallLogBody(BaseModel):
    """Body of a call-log notification."""

    model_config = ConfigDict(extra="ignore")

    records: list[dict[str, Any]]


class WebhookEnvelope(BaseModel):
    """Outer shape of a subscription notification."""

    model_config = ConfigDict(extra="ignore")

    event: str | None = None
    uuid: str | None = None
    subscription_id: str | None = Field(default=None, alias="subscriptionId")
    body: Any = None

    @property
    def is_call_log_event(self) -> bool:
        return bool(self.event) and self.event.rstrip("/").endswith(CALL_LOG_EVENT_SUFFIX)
