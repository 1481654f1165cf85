"""
Local development collector.

Serves the browser beacon script and accepts `GET /event?...` the way a
real collector does: any query, 1x1 image back, nothing for the client to
interpret. Received events are kept in memory for inspection only.
"""

from __future__ import annotations

import base64
import logging
import threading
import time
from collections import deque
from typing import Any, Deque, Dict, List, Optional

from flask import Flask, Response, jsonify, request

from .config import CollectorConfig, Settings

logger = logging.getLogger(__name__)

# 1x1 transparent GIF
PIXEL_GIF_BYTES = base64.b64decode(b"R0lGODlhAQABAIAAAAAAAP///yH5BAEAAAAALAAAAAABAAEAAAIBRAA7")


def beacon_script(marker: str = "divolte") -> str:
    # Returned by /dvt.js. Locates its own <script>, sends one pageview and exposes
    # dvt as an AMD module, a CommonJS export, or window.dvt / window.$$$.
    return r"""(function (window) {
  "use strict";
  var document = window.document;
  var el = document.currentScript;
  if (!el) {
    el = document.getElementById("__MARKER__");
    if (!el || el.tagName.toLowerCase() !== "script") el = null;
  }
  if (!el || el.id !== "__MARKER__") {
    throw "DVT not initialized correctly; script element missing id='__MARKER__'.";
  }
  var src = el.src.split(/[?#]/)[0];
  var baseURL = src.substring(0, src.lastIndexOf("/") + 1);

  function signal() {
    var de = document.documentElement || {}, body = document.body || {};
    var event = {
      l: window.location.href,
      r: document.referrer || undefined,
      i: window.screen.availWidth,
      j: window.screen.availHeight,
      w: window.innerWidth || de.clientWidth || body.clientWidth || undefined,
      h: window.innerHeight || de.clientHeight || body.clientHeight || undefined
    };
    var params = [];
    for (var k in event) {
      if (event.hasOwnProperty(k) && typeof event[k] !== "undefined") {
        params.push(k + "=" + encodeURIComponent(event[k]));
      }
    }
    new Image(1, 1).src = baseURL + "event?" + params.join("&");
  }

  var dvt = { signal: signal };
  if (typeof define === "function" && define.amd) {
    define(function () { return dvt; });
  } else if (typeof module !== "undefined" && module.exports) {
    module.exports = dvt;
  } else {
    window.dvt = window.$$$ = dvt;
  }
  signal();
})(window);
""".replace("__MARKER__", marker)


class EventLog:
    """Bounded, thread-safe list of received events (newest last)."""

    def __init__(self, max_events: int = 1000) -> None:
        self._lock = threading.Lock()
        self._events: Deque[Dict[str, Any]] = deque(maxlen=max(1, max_events))

    def record(self, params: Dict[str, str], *, user_agent: str = "") -> Dict[str, Any]:
        entry = {"ts": int(time.time()), "params": params, "user_agent": user_agent}
        with self._lock:
            self._events.append(entry)
        return entry

    def recent(self, limit: int = 200) -> List[Dict[str, Any]]:
        with self._lock:
            items = list(self._events)
        return list(reversed(items[-limit:]))

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)


def create_app(settings: Optional[Settings] = None) -> Flask:
    settings = settings or Settings()
    cfg: CollectorConfig = settings.collector
    events = EventLog(cfg.max_events)

    app = Flask(__name__)
    app.config["EVENT_LOG"] = events

    @app.get("/health")
    def health() -> Response:
        return jsonify({"status": "ok", "events": len(events)})

    @app.get("/dvt.js")
    def script() -> Response:
        resp = Response(beacon_script(settings.beacon.marker), mimetype="application/javascript")
        resp.headers["Cache-Control"] = "no-cache"
        return resp

    @app.get("/event")
    def event() -> Response:
        """
        Event ingestion. Every query parameter is optional; an empty query
        is still a valid event.
        """
        params = {k: v for k, v in request.args.items()}
        events.record(params, user_agent=request.headers.get("User-Agent", ""))
        logger.info("event %s", params)

        resp = Response(PIXEL_GIF_BYTES, mimetype="image/gif")
        # Every signal must reach the collector, never a cache.
        resp.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
        resp.headers["Pragma"] = "no-cache"
        return resp

    @app.get("/api/events/recent")
    def events_recent() -> Response:
        limit = int(request.args.get("limit", default=200, type=int))
        limit = max(1, min(cfg.max_events, limit))
        return jsonify({"events": events.recent(limit=limit)})

    return app


def run(settings: Settings) -> None:
    logging.getLogger("werkzeug").setLevel(logging.ERROR)
    app = create_app(settings)
    logger.info("Collector listening on http://%s:%d/", settings.collector.host, settings.collector.port)
    app.run(host=settings.collector.host, port=settings.collector.port, debug=False)
