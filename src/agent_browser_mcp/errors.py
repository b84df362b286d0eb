"""Error taxonomy for tool invocations."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class ErrorKind(str, enum.Enum):
    """Failure classes surfaced to callers as error envelopes."""

    ARGUMENT = "argument"
    RESOLUTION = "resolution"
    NAVIGATION_TIMEOUT = "navigation_timeout"
    ACTION_TIMEOUT = "action_timeout"
    ENGINE = "engine"


@dataclass(frozen=True)
class Failure:
    """Result of a phase that did not complete."""

    kind: ErrorKind
    message: str


class ToolError(RuntimeError):
    """Base class for failures raised while serving a tool call."""

    kind: ErrorKind = ErrorKind.ENGINE

    def to_failure(self) -> Failure:
        return Failure(self.kind, str(self))


class ResolutionError(ToolError):
    """Neither a known reference token nor a raw selector is available."""

    kind = ErrorKind.RESOLUTION

