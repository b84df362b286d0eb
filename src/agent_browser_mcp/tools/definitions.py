"""Tool descriptors advertised to clients."""

from __future__ import annotations

from typing import Any

from ..models import ACTION_ARGS, ActionName

DESCRIPTIONS: dict[ActionName, str] = {
    ActionName.OPEN: (
        "Open a URL and start a browser session. Returns a session id to pass to "
        "later calls; pass an existing session_id to restore its cookies and local storage."
    ),
    ActionName.SNAPSHOT: (
        "Capture an accessibility snapshot of the page. Interactive elements get refs "
        "(@e1, @e2, ...) usable by click, fill, type and get_text until the next call."
    ),
    ActionName.CLICK: "Click an element by ref (e.g. @e1) or selector.",
    ActionName.FILL: "Fill a form field, replacing its current value.",
    ActionName.TYPE: (
        "Type text one character at a time, triggering key events. Optionally press "
        "Enter afterwards."
    ),
    ActionName.GET_TEXT: "Read the text content of an element.",
    ActionName.SCREENSHOT: "Capture a JPEG screenshot of the page (base64).",
    ActionName.WAIT: "Wait for a number of seconds, for a text, or for a selector to appear.",
    ActionName.PRESS_KEY: "Press a keyboard key (e.g. Enter, Tab, ArrowDown, Escape).",
    ActionName.CLOSE: "End a browser session and delete its stored data.",
}


def tool_definitions() -> list[dict[str, Any]]:
    """Return name, description and JSON schema for every tool."""

    tools: list[dict[str, Any]] = []
    for action, model in ACTION_ARGS.items():
        schema = model.model_json_schema()
        schema.pop("title", None)
        tools.append(
            {
                "name": action.tool_name,
                "description": DESCRIPTIONS[action],
                "inputSchema": schema,
            }
        )
    return tools
