from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Union
from urllib.parse import quote

from .page import ElementBox, PageState

Scalar = Union[str, int, float, bool]
Event = Dict[str, Optional[Scalar]]

# Characters encodeURIComponent leaves alone besides alphanumerics.
_URI_COMPONENT_SAFE = "-_.!~*'()"

EVENT_PATH = "event"


def _first_positive(*candidates: Optional[Union[int, float]]) -> Optional[Union[int, float]]:
    for c in candidates:
        if c:
            return c
    return None


def _box(box: Optional[ElementBox], attr: str) -> Optional[int]:
    if box is None:
        return None
    return getattr(box, attr)


def viewport_width(page: PageState) -> Optional[Union[int, float]]:
    return _first_positive(
        page.inner_width,
        _box(page.document_element, "client_width"),
        _box(page.body, "client_width"),
    )


def viewport_height(page: PageState) -> Optional[Union[int, float]]:
    return _first_positive(
        page.inner_height,
        _box(page.document_element, "client_height"),
        _box(page.body, "client_height"),
    )


def collect_event(page: PageState) -> Event:
    """
    Snapshot the page into the six short-key fields.

    Unknown values come back as None; they are dropped at encoding time.
    """
    return {
        "l": page.location or None,
        "r": page.referrer or None,
        "i": page.screen.avail_width if page.screen else None,
        "j": page.screen.avail_height if page.screen else None,
        "w": viewport_width(page),
        "h": viewport_height(page),
    }


def apply_overlay(event: Event, overlay: Optional[Mapping[str, Any]]) -> Event:
    merged = dict(event)
    if not overlay:
        return merged
    for key, value in overlay.items():
        if not isinstance(key, str) or not key:
            raise TypeError(f"Event field names must be non-empty strings, got {key!r}")
        if value is not None and not isinstance(value, (str, int, float, bool)):
            raise TypeError(f"Event field {key!r} must be a scalar, got {type(value).__name__}")
        merged[key] = value
    return merged


def format_value(value: Scalar) -> str:
    # Render like JavaScript's String(): true, 1200, 1200.5
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def encode_component(value: Scalar) -> str:
    return quote(format_value(value), safe=_URI_COMPONENT_SAFE)


def encode_query(event: Mapping[str, Optional[Scalar]]) -> str:
    return "&".join(
        f"{encode_component(key)}={encode_component(value)}"
        for key, value in event.items()
        if value is not None
    )


def event_url(endpoint: str, query: str) -> str:
    return f"{endpoint}{EVENT_PATH}?{query}"
