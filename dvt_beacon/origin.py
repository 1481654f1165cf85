"""
Endpoint resolution.

The endpoint is the directory that served the beacon script; the collector
exposes its `event` path right next to it. It can be given explicitly or
discovered from the loader element of the embedding page.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol
from urllib.parse import urlsplit, urlunsplit

from .page import Element, PageState

logger = logging.getLogger(__name__)

DEFAULT_MARKER = "divolte"


class BeaconInitError(RuntimeError):
    """The beacon cannot work out where to send events."""


class EndpointResolver(Protocol):
    def resolve(self) -> str:
        ...


def derive_endpoint(src: str, base_url: Optional[str] = None) -> str:
    """
    Cut a script URL down to its directory, keeping the trailing '/'.

    Query and fragment are dropped before cutting, so '/dvt.js?v=a/b'
    still yields the script directory.
    """
    full = Element(src=src).resolved_src(base_url) or ""
    parts = urlsplit(full)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise BeaconInitError(f"Cannot derive an endpoint from script source {full!r}.")
    path = parts.path
    directory = path[: path.rfind("/") + 1] or "/"
    return urlunsplit((parts.scheme, parts.netloc, directory, "", ""))


class ConfiguredEndpoint:
    def __init__(self, url: str) -> None:
        self.url = url

    def resolve(self) -> str:
        parts = urlsplit((self.url or "").strip())
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise BeaconInitError(f"Configured endpoint must be an absolute http(s) URL, got {self.url!r}.")
        path = parts.path if parts.path.endswith("/") else parts.path + "/"
        endpoint = urlunsplit((parts.scheme, parts.netloc, path, "", ""))
        logger.info("Divolte base URL configured: %s", endpoint)
        return endpoint


class ScriptTagResolver:
    """
    Finds the <script> that loaded the beacon.

    The page's current script wins when there is one. Otherwise the element
    with the marker id is looked up and must be a script. Either way the
    element has to carry the marker id; there is no fallback endpoint.
    """

    def __init__(self, page: PageState, marker: str = DEFAULT_MARKER) -> None:
        self.page = page
        self.marker = marker

    def find_element(self) -> Element:
        element = self.page.current_script
        if element is None:
            element = self.page.get_element_by_id(self.marker)
            if element is not None and (element.tag or "").lower() != "script":
                element = None
        if element is None or element.id != self.marker:
            raise BeaconInitError(f"DVT not initialized correctly; script element missing id='{self.marker}'.")
        return element

    def resolve(self) -> str:
        element = self.find_element()
        src = element.resolved_src(self.page.document_base())
        if not src:
            raise BeaconInitError(f"DVT not initialized correctly; script element id='{self.marker}' has no src.")
        endpoint = derive_endpoint(src)
        logger.info("Divolte base URL detected: %s", endpoint)
        return endpoint
