from __future__ import annotations

import argparse
import logging
from dataclasses import replace
from pathlib import Path
from typing import Dict, Optional, Tuple

from rich.console import Console
from rich.table import Table

from .client import Beacon
from .collector import run as run_collector
from .config import ConfigError, Settings, load_settings
from .event import collect_event
from .origin import BeaconInitError, ConfiguredEndpoint, EndpointResolver, ScriptTagResolver
from .page import PageState, Screen
from .transport import ThreadedTransport

console = Console()


class _DryRunTransport:
    def __init__(self) -> None:
        self.urls: list[str] = []

    def dispatch(self, url: str) -> None:
        self.urls.append(url)


def _size(text: Optional[str]) -> Tuple[Optional[int], Optional[int]]:
    if not text:
        return None, None
    try:
        w, h = text.lower().split("x", 1)
        return int(w), int(h)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Expected WIDTHxHEIGHT, got {text!r}") from e


def _fields(pairs: Optional[list]) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for p in pairs or []:
        if "=" not in p:
            raise argparse.ArgumentTypeError(f"Expected key=value, got {p!r}")
        k, v = p.split("=", 1)
        out[k.strip()] = v
    return out


def _page(args: argparse.Namespace) -> PageState:
    sw, sh = _size(args.screen)
    vw, vh = _size(args.viewport)
    screen = Screen(avail_width=sw, avail_height=sh)
    if getattr(args, "html", None):
        html = Path(args.html).read_text(encoding="utf-8")
        return PageState.from_html(html, args.url, referrer=args.referrer, screen=screen, inner_width=vw, inner_height=vh)
    return PageState(location=args.url, referrer=args.referrer, screen=screen, inner_width=vw, inner_height=vh)


def _resolver(args: argparse.Namespace, settings: Settings, page: PageState) -> EndpointResolver:
    if getattr(args, "endpoint", None):
        return ConfiguredEndpoint(args.endpoint)
    if settings.beacon.endpoint and not getattr(args, "html", None):
        return ConfiguredEndpoint(settings.beacon.endpoint)
    return ScriptTagResolver(page, marker=settings.beacon.marker)


def _cmd_resolve(args: argparse.Namespace, settings: Settings) -> int:
    page = _page(args)
    endpoint = ScriptTagResolver(page, marker=settings.beacon.marker).resolve()
    console.print(endpoint, markup=False, soft_wrap=True)
    return 0


def _cmd_fire(args: argparse.Namespace, settings: Settings) -> int:
    page = _page(args)
    resolver = _resolver(args, settings, page)
    if args.dry_run:
        transport = _DryRunTransport()
    else:
        transport = ThreadedTransport(timeout_s=settings.transport.timeout_s, user_agent=settings.transport.user_agent)

    beacon = Beacon.initialize(resolver, page, transport)
    overlay = _fields(args.field)
    if overlay:
        beacon.signal(overlay)

    table = Table(title="Event", show_header=True, header_style="bold magenta")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")
    for k, v in collect_event(page).items():
        table.add_row(k, "[dim]omitted[/dim]" if v is None else str(v))
    console.print(f"Endpoint: [green]{beacon.endpoint}[/green]")
    console.print(table)

    if isinstance(transport, _DryRunTransport):
        for url in transport.urls:
            console.print(url, markup=False, soft_wrap=True)
    else:
        transport.flush(settings.transport.timeout_s + 1)
    return 0


def _cmd_collector(args: argparse.Namespace, settings: Settings) -> int:
    c = settings.collector
    collector = replace(c, host=args.host or c.host, port=args.port or c.port)
    settings = replace(settings, collector=collector)
    run_collector(settings)
    return 0


def _add_page_args(p: argparse.ArgumentParser, *, html_required: bool) -> None:
    p.add_argument("--html", required=html_required, help="HTML document that embeds the loader script.")
    p.add_argument("--url", required=True, help="Page location (also the base for relative script src).")
    p.add_argument("--referrer", default=None, help="Referring page URL.")
    p.add_argument("--screen", default=None, help="Available screen size, WIDTHxHEIGHT.")
    p.add_argument("--viewport", default=None, help="Viewport size, WIDTHxHEIGHT.")


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(prog="dvt-beacon", description="Self-locating pageview beacon.")
    p.add_argument("--config", default=None, help="Settings YAML (default: $DVT_BEACON_CONFIG or bundled config.yaml).")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging.")
    sub = p.add_subparsers(dest="cmd", required=True)

    r = sub.add_parser("resolve", help="Print the endpoint discovered from a page's loader script.")
    _add_page_args(r, html_required=True)
    r.set_defaults(func=_cmd_resolve)

    f = sub.add_parser("fire", help="Initialize a beacon for a page and send its pageview.")
    _add_page_args(f, html_required=False)
    f.add_argument("--endpoint", default=None, help="Explicit endpoint; skips loader discovery.")
    f.add_argument("--field", action="append", default=None, help="Extra event field for a second signal, key=value.")
    f.add_argument("--dry-run", action="store_true", help="Print the event URL instead of sending it.")
    f.set_defaults(func=_cmd_fire)

    c = sub.add_parser("collector", help="Run the local development collector.")
    c.add_argument("--host", default=None)
    c.add_argument("--port", type=int, default=None)
    c.set_defaults(func=_cmd_collector)

    args = p.parse_args(argv)
    try:
        settings = load_settings(args.config)
    except (ConfigError, FileNotFoundError) as e:
        console.print(f"[bold red]Config error:[/bold red] {e}")
        return 2
    logging.basicConfig(level=logging.DEBUG if args.verbose else getattr(logging, settings.log_level))

    try:
        return int(args.func(args, settings))
    except BeaconInitError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        return 2
    except argparse.ArgumentTypeError as e:
        p.error(str(e))
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
