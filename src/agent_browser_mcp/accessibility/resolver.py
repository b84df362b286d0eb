"""Resolve caller-supplied element references to selectors."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Optional

from ..errors import ResolutionError
from ..models import RefEntry

REF_SIGIL = "@"


def normalize_ref(ref: str) -> str:
    """Strip the optional leading ``@`` from a reference token."""

    return ref[len(REF_SIGIL):] if ref.startswith(REF_SIGIL) else ref


def resolve_selector(
    ref: Optional[str],
    selector: Optional[str],
    refs: Optional[Mapping[str, RefEntry]],
) -> str:
    """Return the selector to act on.

    A token found in ``refs`` wins, then the raw ``selector``. Nothing here
    checks the page: a returned selector may still fail to match later.
    """

    if ref and refs:
        entry = refs.get(normalize_ref(ref))
        if entry is not None:
            return entry.selector
    if selector:
        return selector
    if ref:
        raise ResolutionError(f"Could not resolve selector: unknown ref {ref}")
    raise ResolutionError("Could not resolve selector")
