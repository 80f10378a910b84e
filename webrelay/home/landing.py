"""Landing page: an address form plus a browser-local list of recent targets.

The history lives in ``localStorage`` only; the server never sees it.
Entries are kept most-recent-first, de-duplicated, at most ``HISTORY_SIZE`` of them.
"""

import json
import logging
import re
from typing import Optional
from urllib.parse import urlsplit

from fastapi import APIRouter, Query
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse

from webrelay.rewrite.wrapper import wrap
from webrelay.vars import HISTORY_SIZE, PROXY_ENTRY_PATH

logger = logging.getLogger("uvicorn.error")

router = APIRouter()

HISTORY_STORAGE_KEY = "proxyHistory"
INVALID_INPUT_MESSAGE = "Enter a valid URL, e.g. https://example.com"

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)


def normalize_target(raw: Optional[str]) -> Optional[str]:
    """
    Turn what a user typed into an absolute http(s) URL.

    Bare hosts get an ``https://`` prefix. Returns None when no host can be found.
    """
    if not raw:
        return None
    candidate = raw.strip()
    if not candidate:
        return None
    if not _SCHEME_RE.match(candidate):
        candidate = "https://" + candidate

    try:
        parts = urlsplit(candidate)
        parts.port
    except ValueError:
        return None
    if not parts.hostname:
        return None
    if not parts.path:
        # Same shape a browser shows for a bare origin
        candidate = parts._replace(path="/").geturl()
    return candidate


_PAGE = """<!doctype html>
<html>
<head>
<meta charset="utf-8">
<title>Web Relay</title>
</head>
<body>
<main style="max-width:720px;margin:0 auto;padding:2rem;font-family:sans-serif">
  <h1>Web Relay</h1>
  <p>Type a website to visit through the relay.</p>
  <form action="/go" method="GET" style="display:flex;gap:0.5rem">
    <input name="url" placeholder="https://example.com" style="flex:1;padding:0.75rem" autofocus>
    <button type="submit" style="padding:0.75rem 1rem">Go</button>
  </form>
  <p id="input-error" role="alert" style="color:#b00020" hidden></p>
  <section id="recent" style="margin-top:1.5rem" hidden>
    <h3>Recent</h3>
    <ul id="recent-list"></ul>
  </section>
  <section style="margin-top:2rem;color:#555">
    <p>Some sites use Content Security Policy or scripts that break when
    relayed. Only simple GET requests and basic HTML rewriting are supported.</p>
  </section>
</main>
<script>
(function () {
  var KEY = __STORAGE_KEY__, LIMIT = __LIMIT__, ENTRY = __ENTRY__, INVALID = __INVALID__;
  var history = [];
  try { history = JSON.parse(localStorage.getItem(KEY) || "[]"); } catch (e) {}
  var list = document.getElementById("recent-list");
  history.forEach(function (h) {
    var a = document.createElement("a");
    a.href = ENTRY + "?url=" + encodeURIComponent(h);
    a.textContent = h;
    var li = document.createElement("li");
    li.appendChild(a);
    list.appendChild(li);
  });
  document.getElementById("recent").hidden = history.length === 0;
  function normalize(raw) {
    var value = raw.trim();
    if (!value) return "";
    if (!/^https?:\\/\\//i.test(value)) value = "https://" + value;
    try {
      var parsed = new URL(value);
      return parsed.hostname ? parsed.href : "";
    } catch (e) {
      return "";
    }
  }
  var error = document.getElementById("input-error");
  document.querySelector("form").addEventListener("submit", function (event) {
    var target = normalize(this.elements.url.value);
    if (!target) {
      // Only addresses that normalize are remembered
      event.preventDefault();
      error.textContent = INVALID;
      error.hidden = false;
      return;
    }
    error.hidden = true;
    this.elements.url.value = target;
    history = [target].concat(history.filter(function (h) { return h !== target; })).slice(0, LIMIT);
    localStorage.setItem(KEY, JSON.stringify(history));
  });
})();
</script>
</body>
</html>
"""


def render_landing_page() -> str:
    return (
        _PAGE.replace("__STORAGE_KEY__", json.dumps(HISTORY_STORAGE_KEY))
        .replace("__LIMIT__", str(int(HISTORY_SIZE)))
        .replace("__ENTRY__", json.dumps(PROXY_ENTRY_PATH))
        .replace("__INVALID__", json.dumps(INVALID_INPUT_MESSAGE))
    )


@router.get("/", response_class=HTMLResponse)
async def landing_page():
    return HTMLResponse(render_landing_page())


@router.get("/go")
async def go(url: Optional[str] = Query(None)):
    """Normalize the typed address and send the browser into the relay."""
    target = normalize_target(url)
    if target is None:
        logger.warning(f"[Home] Could not normalize {url!r}")
        return PlainTextResponse(INVALID_INPUT_MESSAGE, status_code=400)
    return RedirectResponse(wrap(target), status_code=303)
