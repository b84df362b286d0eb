"""Shared models used across the agent browser server."""

from __future__ import annotations

import enum
import json
import time
from dataclasses import dataclass, field
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


def now_ms() -> int:
    """Return the current wall-clock time in epoch milliseconds."""

    return int(time.time() * 1000)


class ActionName(str, enum.Enum):
    """Browser actions exposed as tools."""

    OPEN = "open"
    SNAPSHOT = "snapshot"
    CLICK = "click"
    FILL = "fill"
    TYPE = "type"
    GET_TEXT = "get_text"
    SCREENSHOT = "screenshot"
    WAIT = "wait"
    PRESS_KEY = "press_key"
    CLOSE = "close"

    @property
    def tool_name(self) -> str:
        return f"browser_{self.value}"


# Session record --------------------------------------------------------------


class CookieRecord(BaseModel):
    """A single cookie as captured from the browser cookie jar."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    value: str
    domain: str
    path: str
    expires: Optional[float] = None
    http_only: Optional[bool] = Field(default=None, alias="httpOnly")
    secure: Optional[bool] = None
    same_site: Optional[Literal["Strict", "Lax", "None"]] = Field(
        default=None, alias="sameSite"
    )


class RefEntry(BaseModel):
    """Correlation between a snapshot node and a selector usable later."""

    role: str
    name: str
    selector: str


class SessionRecord(BaseModel):
    """Persisted unit of cross-call browsing continuity."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    url: str = ""
    cookies: list[CookieRecord] = Field(default_factory=list)
    local_storage: dict[str, str] = Field(default_factory=dict, alias="localStorage")
    last_snapshot: Optional[str] = Field(default=None, alias="lastSnapshot")
    refs: Optional[dict[str, RefEntry]] = None
    created_at: int = Field(default_factory=now_ms, alias="createdAt")
    updated_at: int = Field(default_factory=now_ms, alias="updatedAt")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


# Accessibility tree ----------------------------------------------------------


@dataclass
class AXNode:
    """A node of the accessibility tree as reported by the browser engine."""

    role: str
    name: str = ""
    children: list["AXNode"] = field(default_factory=list)


@dataclass
class IndexedSnapshot:
    """Outline text plus the reference table minted for one snapshot."""

    outline: str
    refs: dict[str, RefEntry] = field(default_factory=dict)

    def ref_summary(self) -> dict[str, dict[str, str]]:
        """Reference table without selectors, as shown to callers."""

        return {token: {"role": entry.role, "name": entry.name} for token, entry in self.refs.items()}


# Action inputs ---------------------------------------------------------------


class ActionArgs(BaseModel):
    """Fields shared by every action that operates on a page."""

    model_config = ConfigDict(extra="ignore")

    session_id: Optional[str] = Field(default=None, description="Existing session id")
    url: Optional[str] = Field(
        default=None, description="Target URL (used when no session id is given)"
    )

    @model_validator(mode="after")
    def _require_target(self) -> "ActionArgs":
        if not self.session_id and not self.url:
            raise ValueError("session_id or url is required")
        return self


class LocatorArgs(ActionArgs):
    """Arguments for actions that target a single element."""

    ref: Optional[str] = Field(default=None, description="Snapshot reference, e.g. @e1")
    selector: Optional[str] = Field(
        default=None, description="Raw selector used when no ref is given"
    )

    @model_validator(mode="after")
    def _require_locator(self) -> "LocatorArgs":
        if not self.ref and not self.selector:
            raise ValueError("ref or selector is required")
        return self

    @property
    def target_label(self) -> str:
        return self.ref or self.selector or ""


class OpenArgs(BaseModel):
    """Open a URL, starting a new session or resuming an existing one."""

    model_config = ConfigDict(extra="ignore")

    url: str = Field(min_length=1, description="URL to open")
    session_id: Optional[str] = Field(
        default=None,
        description="Existing session id; restores its cookies and local storage",
    )


class SnapshotArgs(ActionArgs):
    """Capture an accessibility snapshot with element references."""


class ClickArgs(LocatorArgs):
    """Click an element."""


class FillArgs(LocatorArgs):
    """Fill a form field, replacing its current value."""

    value: str = Field(description="Value to fill in")


class TypeArgs(LocatorArgs):
    """Type text one character at a time."""

    text: str = Field(min_length=1, description="Text to type")
    submit: bool = Field(default=False, description="Press Enter after typing")


class GetTextArgs(LocatorArgs):
    """Read the text content of an element."""


class ScreenshotArgs(ActionArgs):
    """Capture a JPEG screenshot of the page."""

    full_page: bool = Field(default=False, description="Capture the full scrollable page")


class WaitArgs(ActionArgs):
    """Wait for a duration, a text, or a selector."""

    time: Optional[float] = Field(default=None, gt=0, description="Seconds to wait")
    text: Optional[str] = Field(default=None, description="Text to wait for")
    selector: Optional[str] = Field(default=None, description="Selector to wait for")

    @model_validator(mode="after")
    def _require_condition(self) -> "WaitArgs":
        if self.time is None and not self.text and not self.selector:
            raise ValueError("time, text, or selector is required")
        return self


class PressKeyArgs(ActionArgs):
    """Press a keyboard key."""

    key: str = Field(min_length=1, description="Key name, e.g. Enter, Tab, ArrowDown")


class CloseArgs(BaseModel):
    """End a session and delete its persisted data."""

    model_config = ConfigDict(extra="ignore")

    session_id: str = Field(min_length=1, description="Session id to close")


ACTION_ARGS: dict[ActionName, type[BaseModel]] = {
    ActionName.OPEN: OpenArgs,
    ActionName.SNAPSHOT: SnapshotArgs,
    ActionName.CLICK: ClickArgs,
    ActionName.FILL: FillArgs,
    ActionName.TYPE: TypeArgs,
    ActionName.GET_TEXT: GetTextArgs,
    ActionName.SCREENSHOT: ScreenshotArgs,
    ActionName.WAIT: WaitArgs,
    ActionName.PRESS_KEY: PressKeyArgs,
    ActionName.CLOSE: CloseArgs,
}


# Result envelope -------------------------------------------------------------


class ContentItem(BaseModel):
    """One item of a tool result: JSON text or an inline image."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["text", "image"]
    text: Optional[str] = None
    data: Optional[str] = None
    mime_type: Optional[str] = Field(default=None, alias="mimeType")


class ToolResult(BaseModel):
    """Uniform envelope returned by every action."""

    model_config = ConfigDict(populate_by_name=True)

    content: list[ContentItem]
    is_error: bool = Field(default=False, alias="isError")

    @classmethod
    def success(cls, payload: dict[str, Any], *, image: Optional[str] = None) -> "ToolResult":
        items = [ContentItem(type="text", text=json.dumps(payload, indent=2, ensure_ascii=False))]
        if image is not None:
            items.append(ContentItem(type="image", data=image, mime_type="image/jpeg"))
        return cls(content=items)

    @classmethod
    def error(cls, message: str) -> "ToolResult":
        body = json.dumps({"error": True, "message": message}, indent=2, ensure_ascii=False)
        return cls(content=[ContentItem(type="text", text=body)], is_error=True)

    def payload(self) -> dict[str, Any]:
        """Decode the JSON payload carried by the first text item."""

        for item in self.content:
            if item.type == "text" and item.text is not None:
                return json.loads(item.text)
        return {}

    def image(self) -> Optional[ContentItem]:
        for item in self.content:
            if item.type == "image":
                return item
        return None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
