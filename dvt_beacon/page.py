from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional
from urllib.parse import urljoin

import lxml.html


@dataclass(frozen=True)
class Element:
    """An element of the embedding document, as far as loader discovery cares."""

    tag: str = "script"
    id: Optional[str] = None
    src: Optional[str] = None

    def resolved_src(self, base_url: Optional[str] = None) -> Optional[str]:
        # Same as the DOM `src` property: relative sources resolve against the document base.
        if not self.src:
            return None
        if base_url:
            return urljoin(base_url, self.src)
        return self.src


@dataclass
class Screen:
    avail_width: Optional[int] = None
    avail_height: Optional[int] = None


@dataclass
class ElementBox:
    client_width: Optional[int] = None
    client_height: Optional[int] = None


@dataclass
class PageState:
    """
    What the beacon can see of the browser at any moment.

    Values are read when an event is signalled, so mutating the state
    (navigate, resize) is reflected in the next event.
    """

    location: str
    referrer: Optional[str] = None
    screen: Screen = field(default_factory=Screen)
    inner_width: Optional[int] = None
    inner_height: Optional[int] = None
    document_element: Optional[ElementBox] = None
    body: Optional[ElementBox] = None
    current_script: Optional[Element] = None
    elements: Dict[str, Element] = field(default_factory=dict)
    # Document base URL from <base href>; relative URLs resolve against it.
    base_url: Optional[str] = None

    def get_element_by_id(self, element_id: str) -> Optional[Element]:
        return self.elements.get(element_id)

    def navigate(self, url: str) -> None:
        self.location = url

    def resize(self, width: Optional[int], height: Optional[int]) -> None:
        self.inner_width = width
        self.inner_height = height

    @classmethod
    def from_html(
        cls,
        html: str,
        url: str,
        *,
        referrer: Optional[str] = None,
        screen: Optional[Screen] = None,
        inner_width: Optional[int] = None,
        inner_height: Optional[int] = None,
    ) -> "PageState":
        """
        Build a page from markup. Only elements carrying an id and the first
        <base href> are kept; there is no "currently executing script" for a
        parsed document.
        """
        elements: Dict[str, Element] = {}
        base_url: Optional[str] = None
        if html.strip():
            doc = lxml.html.document_fromstring(html)
            # getElementById returns the first match in document order.
            for el in doc.xpath("//*[@id]"):
                eid = el.get("id")
                if eid and eid not in elements:
                    src = el.get("src")
                    elements[eid] = Element(tag=el.tag, id=eid, src=src.strip() if src is not None else None)
            bases = doc.xpath("//base[@href]")
            if bases:
                base_url = urljoin(url, bases[0].get("href").strip())
        return cls(
            location=url,
            referrer=referrer,
            screen=screen or Screen(),
            inner_width=inner_width,
            inner_height=inner_height,
            elements=elements,
            base_url=base_url,
        )

    def document_base(self) -> str:
        return self.base_url or self.location

