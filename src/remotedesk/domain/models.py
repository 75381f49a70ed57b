"""Core domain models for the remotedesk relay.

These models represent the records kept in the shared store: target
presence records, the latest screen frame per target, and queued input
commands together with their typed payloads.
"""

from __future__ import annotations

import enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

UNKNOWN = "Unknown"


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class CommandType(str, enum.Enum):
    """Discriminator for queued command payloads."""

    MOUSE = "mouse"
    KEYBOARD = "keyboard"
    SYSTEM = "system"
    ADVANCED = "advanced"
    EXECUTE = "execute"
    FILES = "files"


class CommandStatus(str, enum.Enum):
    """Lifecycle status of a queued command.

    Acknowledged commands are deleted rather than marked, so only
    PENDING is ever persisted. DONE exists for agents that echo state.
    """

    PENDING = "pending"
    DONE = "done"


# ---------------------------------------------------------------------------
# Presence Models
# ---------------------------------------------------------------------------


class TargetRecord(BaseModel):
    """A remote agent known to the relay.

    ``online`` is derived on every read from ``last_seen`` and is never
    persisted as ground truth.
    """

    id: str = Field(min_length=1, description="Opaque caller-supplied target id")
    username: str = Field(default=UNKNOWN)
    hostname: str = Field(default=UNKNOWN)
    os: str = Field(default=UNKNOWN)
    ip: str = Field(default=UNKNOWN)
    first_seen: int = Field(ge=0, description="Epoch ms of the first registration")
    last_seen: int = Field(ge=0, description="Epoch ms of the latest contact")
    online: bool = Field(default=False)

    def with_presence(self, now: int, window_ms: int) -> TargetRecord:
        """Copy with ``online`` recomputed against ``now``."""
        return self.model_copy(update={"online": now - self.last_seen < window_ms})

    def to_stored(self) -> dict[str, Any]:
        return self.model_dump(exclude={"online"})


# ---------------------------------------------------------------------------
# Screen Models
# ---------------------------------------------------------------------------


class ScreenFrame(BaseModel):
    """The most recent frame pushed by a target.

    ``screen`` is passed through verbatim; the relay never decodes it.
    """

    model_config = ConfigDict(frozen=True)

    target_id: str
    screen: str = Field(description="Encoded image payload (typically base64 JPEG)")
    timestamp: int = Field(ge=0, description="Epoch ms at which the relay accepted the frame")
    quality: int = Field(default=70, description="Encoder quality hint supplied by the agent")

    def age(self, now: int) -> int:
        return now - self.timestamp


# ---------------------------------------------------------------------------
# Command payloads (discriminated union on ``type``)
# ---------------------------------------------------------------------------


class _PayloadData(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    timestamp: int | None = Field(default=None, description="Client-side creation time")


class MouseData(_PayloadData):
    action: Literal["click", "dblclick", "mousedown", "mouseup", "move", "scroll"]
    button: Literal["left", "right", "middle"] | None = None
    direction: Literal["up", "down"] | None = None
    x: float | None = Field(default=None, description="Normalized x (0-1)")
    y: float | None = Field(default=None, description="Normalized y (0-1)")

    @field_validator("x", "y")
    @classmethod
    def _clamp_to_screen(cls, v: float | None) -> float | None:
        # Controllers scale clicks from a resized canvas and can overshoot the edge
        if v is None:
            return None
        return min(max(v, 0.0), 1.0)


class KeyboardData(_PayloadData):
    action: Literal["press", "type"]
    key: str | None = None
    text: str | None = None

    @model_validator(mode="after")
    def _check_action_fields(self) -> KeyboardData:
        if self.action == "press" and not self.key:
            raise ValueError("keyboard press requires 'key'")
        if self.action == "type" and self.text is None:
            raise ValueError("keyboard type requires 'text'")
        return self


class ShellData(_PayloadData):
    command: str = Field(min_length=1)


class ExecuteData(_PayloadData):
    code: str = Field(min_length=1)
    language: str = Field(default="powershell")


class FilesData(_PayloadData):
    action: Literal["list", "upload", "download"]
    path: str | None = None
    filename: str | None = None
    data: str | None = Field(default=None, description="Base64 file body for uploads")


class MouseCommand(BaseModel):
    """Pointer input at normalized screen coordinates."""

    type: Literal["mouse"] = "mouse"
    data: MouseData


class KeyboardCommand(BaseModel):
    """A single key press or a typed string."""

    type: Literal["keyboard"] = "keyboard"
    data: KeyboardData


class SystemCommand(BaseModel):
    """A named system action (lock, restart, ...) interpreted by the agent."""

    type: Literal["system"] = "system"
    data: ShellData


class AdvancedCommand(BaseModel):
    type: Literal["advanced"] = "advanced"
    data: ShellData


class ExecuteCommand(BaseModel):
    """Source code the agent runs with the given interpreter."""

    type: Literal["execute"] = "execute"
    data: ExecuteData


class FilesCommand(BaseModel):
    """A file-system browse, upload or download request."""

    type: Literal["files"] = "files"
    data: FilesData


CommandPayload = Annotated[
    Union[
        MouseCommand,
        KeyboardCommand,
        SystemCommand,
        AdvancedCommand,
        ExecuteCommand,
        FilesCommand,
    ],
    Field(discriminator="type"),
]


class Command(BaseModel):
    """A queued command as stored and as returned to agents."""

    id: str
    target_id: str
    type: CommandType
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: int = Field(ge=0)
    status: CommandStatus = Field(default=CommandStatus.PENDING)

    @classmethod
    def from_payload(
        cls, command_id: str, target_id: str, payload: CommandPayload, now: int
    ) -> Command:
        return cls(
            id=command_id,
            target_id=target_id,
            type=CommandType(payload.type),
            data=payload.data.model_dump(exclude_none=True),
            timestamp=now,
        )
