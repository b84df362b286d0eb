"""Accessibility tree outlining and reference assignment."""

from __future__ import annotations

from typing import Optional

from ..models import AXNode, IndexedSnapshot, RefEntry

INTERACTIVE_ROLES = frozenset(
    {"button", "link", "textbox", "checkbox", "radio", "combobox", "menuitem", "tab"}
)


def synthesize_selector(role: str, name: str) -> str:
    """Build a role selector for ``role`` with the exact accessible ``name``.

    Elements sharing a role and name resolve to the same selector; no
    attempt is made to tell them apart.
    """

    if name:
        escaped = name.replace('"', '\\"')
        return f'role={role}[name="{escaped}"]'
    return f"role={role}"


class AccessibilityIndexer:
    """Render an accessibility tree as an outline and mint element references.

    Every call to :meth:`index` numbers references from ``e1`` again, so a
    token only means something relative to the snapshot that produced it.
    """

    def __init__(self, interactive_roles: frozenset[str] = INTERACTIVE_ROLES) -> None:
        self._interactive_roles = interactive_roles

    def index(self, root: Optional[AXNode]) -> IndexedSnapshot:
        if root is None:
            return IndexedSnapshot(outline="")
        lines: list[str] = []
        refs: dict[str, RefEntry] = {}
        counter = 1
        # Pre-order walk; children are pushed in reverse to pop in document order.
        stack: list[tuple[AXNode, int]] = [(root, 0)]
        while stack:
            node, depth = stack.pop()
            role = node.role or "unknown"
            line = f"{'  ' * depth}- {role}"
            if node.name:
                line += f' "{node.name}"'
            if role in self._interactive_roles:
                token = f"e{counter}"
                counter += 1
                refs[token] = RefEntry(
                    role=role,
                    name=node.name,
                    selector=synthesize_selector(role, node.name),
                )
                line += f" [ref={token}]"
            lines.append(line)
            for child in reversed(node.children):
                stack.append((child, depth + 1))
        return IndexedSnapshot(outline="\n".join(lines), refs=refs)
