"""
Self-locating pageview beacon.

    page = PageState.from_html(html, "https://site.test/page")
    beacon = initialize(page)          # resolves endpoint, fires the pageview
    beacon.signal()                    # e.g. after in-page navigation
"""

from __future__ import annotations

from typing import Optional

from .client import Beacon
from .origin import DEFAULT_MARKER, BeaconInitError, ConfiguredEndpoint, ScriptTagResolver, derive_endpoint
from .page import Element, ElementBox, PageState, Screen
from .transport import ThreadedTransport, Transport

__version__ = "1.0.0"

__all__ = [
    "Beacon",
    "BeaconInitError",
    "ConfiguredEndpoint",
    "Element",
    "ElementBox",
    "PageState",
    "Screen",
    "ScriptTagResolver",
    "ThreadedTransport",
    "Transport",
    "derive_endpoint",
    "initialize",
]


def initialize(
    page: PageState,
    *,
    endpoint: Optional[str] = None,
    marker: str = DEFAULT_MARKER,
    transport: Optional[Transport] = None,
) -> Beacon:
    """Resolve the endpoint (explicit, or from the page's loader script) and fire the pageview."""
    resolver = ConfiguredEndpoint(endpoint) if endpoint else ScriptTagResolver(page, marker=marker)
    return Beacon.initialize(resolver, page, transport)
