from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from .event import apply_overlay, collect_event, encode_query, event_url
from .origin import EndpointResolver
from .page import PageState
from .transport import ThreadedTransport, Transport

logger = logging.getLogger(__name__)


class Beacon:
    """
    An initialized beacon for one page.

    The endpoint is fixed at construction. Use `Beacon.initialize` to
    resolve it and fire the initial pageview in one step.
    """

    def __init__(self, endpoint: str, page: PageState, transport: Optional[Transport] = None) -> None:
        if not endpoint.endswith("/"):
            raise ValueError(f"Endpoint must end with '/', got {endpoint!r}")
        self._endpoint = endpoint
        self.page = page
        self.transport = transport if transport is not None else ThreadedTransport()

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @classmethod
    def initialize(
        cls,
        resolver: EndpointResolver,
        page: PageState,
        transport: Optional[Transport] = None,
    ) -> "Beacon":
        # Raises BeaconInitError before anything touches the network.
        endpoint = resolver.resolve()
        beacon = cls(endpoint, page, transport)
        logger.info("Firing initial event")
        beacon.signal()
        return beacon

    def build_url(self, overlay: Optional[Mapping[str, Any]] = None) -> str:
        event = apply_overlay(collect_event(self.page), overlay)
        return event_url(self._endpoint, encode_query(event))

    def signal(self, overlay: Optional[Mapping[str, Any]] = None) -> None:
        self.transport.dispatch(self.build_url(overlay))
