"""
HTML rewriting for relayed documents.

One rewrite pass over a parsed document:

1. every resource reference in ``REWRITE_RULES`` is resolved against the
   document's base URL and wrapped so the browser fetches it through the relay,
2. ``url(...)`` references inside ``<style>`` blocks get the same treatment,
3. the navigation toolbar is prepended to ``<body>``.

Comments, script bodies and inline ``style`` attributes are left alone.
"""

import logging
import re
from typing import Optional, Tuple

from bs4 import BeautifulSoup
from bs4.element import Stylesheet, Tag
from opentelemetry import trace

from webrelay.rewrite.resolver import UnresolvableReference, resolve_strict
from webrelay.rewrite.wrapper import WRAP_PARAM, wrap
from webrelay.vars import PROXY_ENTRY_PATH

logger = logging.getLogger("uvicorn.error")
tracer = trace.get_tracer(__name__)

# (tag, attribute) pairs carrying resource references, visited in this order
REWRITE_RULES: Tuple[Tuple[str, str], ...] = (
    ("a", "href"),
    ("link", "href"),
    ("img", "src"),
    ("script", "src"),
    ("iframe", "src"),
    ("source", "src"),
    ("video", "src"),
    ("audio", "src"),
    ("form", "action"),
)

# Schemes the browser has to see untouched
PASSTHROUGH_PREFIXES = ("mailto:", "tel:", "javascript:")

# Stops at the first ")"; references containing a literal parenthesis are not supported
CSS_URL_PATTERN = re.compile(r"url\(([^)]+)\)")

TOOLBAR_ID = "proxy-bar"
TOOLBAR_HEIGHT_CSS = "html,body{margin-top:40px !important}"

_BAR_STYLE = (
    "position:fixed;top:0;left:0;right:0;background:#111;color:#eee;"
    "font:14px/1.4 sans-serif;padding:8px;z-index:999999;"
)
_FORM_STYLE = "display:flex;gap:8px;margin:0;"
_INPUT_STYLE = (
    "flex:1;padding:6px;border-radius:4px;border:1px solid #333;"
    "background:#222;color:#eee;"
)
_BUTTON_STYLE = (
    "padding:6px 10px;border-radius:4px;background:#444;color:#eee;"
    "border:1px solid #333;"
)


def should_skip(value: Optional[str]) -> bool:
    """True for values that must reach the browser unmodified."""
    if not value:
        return True
    # Browsers ignore surrounding whitespace when following a reference
    value = value.strip()
    if not value or value.startswith("#"):
        return True
    return value.lower().startswith(PASSTHROUGH_PREFIXES)


def _rewrap(value: str, base_url: str) -> Optional[str]:
    """Wrapped absolute form of ``value``, or None when it does not resolve."""
    try:
        absolute = resolve_strict(value, base_url)
    except UnresolvableReference as e:
        logger.debug(f"[Rewrite] Leaving reference unmodified: {e}")
        return None
    return wrap(absolute)


def rewrite_attributes(soup: BeautifulSoup, base_url: str) -> int:
    """Rewrap every reference listed in ``REWRITE_RULES``. Returns the number of rewrites."""
    rewritten = 0
    for tag_name, attr in REWRITE_RULES:
        for element in soup.find_all(tag_name):
            value = element.get(attr)
            if should_skip(value):
                continue

            if tag_name == "form":
                # Only GET can be relayed; anything else would post straight to the origin
                element["method"] = "GET"

            wrapped = _rewrap(value, base_url)
            if wrapped is None:
                continue
            element[attr] = wrapped
            rewritten += 1
    return rewritten


def rewrite_css_urls(css: str, base_url: str) -> str:
    """Rewrap ``url(...)`` references in a stylesheet text; ``data:`` URIs stay as they are."""

    def replacer(match: re.Match) -> str:
        raw = match.group(1).strip().strip("'\"")
        if not raw or raw.lower().startswith("data:"):
            return match.group(0)
        wrapped = _rewrap(raw, base_url)
        if wrapped is None:
            return match.group(0)
        return f"url({wrapped})"

    return CSS_URL_PATTERN.sub(replacer, css)


def rewrite_style_blocks(soup: BeautifulSoup, base_url: str) -> None:
    for style in soup.find_all("style"):
        css = style.string
        if not css:
            continue
        replaced = rewrite_css_urls(str(css), base_url)
        if replaced != css:
            style.string = Stylesheet(replaced)


def build_toolbar(soup: BeautifulSoup, base_url: str) -> Tuple[Tag, Tag]:
    """The toolbar ``<div>`` and the ``<style>`` rule that keeps it off the page content."""
    bar = soup.new_tag("div", attrs={"id": TOOLBAR_ID, "style": _BAR_STYLE})

    form = soup.new_tag(
        "form",
        attrs={"action": PROXY_ENTRY_PATH, "method": "GET", "style": _FORM_STYLE},
    )
    field = soup.new_tag(
        "input",
        attrs={
            "type": "text",
            "name": WRAP_PARAM,
            "value": base_url,
            "style": _INPUT_STYLE,
        },
    )
    button = soup.new_tag("button", attrs={"type": "submit", "style": _BUTTON_STYLE})
    button.string = "Go"
    label = soup.new_tag("span", attrs={"style": "margin-left:auto;opacity:0.8"})
    label.string = f"Proxying: {base_url}"

    form.append(field)
    form.append(button)
    form.append(label)
    bar.append(form)

    spacer = soup.new_tag("style")
    spacer.string = Stylesheet(TOOLBAR_HEIGHT_CSS)
    return bar, spacer


def inject_toolbar(soup: BeautifulSoup, base_url: str) -> bool:
    """Prepend the toolbar to ``<body>``. Documents without a body are left as they are."""
    body = soup.body
    if body is None:
        return False
    bar, spacer = build_toolbar(soup, base_url)
    body.insert(0, bar)
    body.insert(1, spacer)
    return True


def rewrite_html(html: str, base_url: str) -> str:
    """
    Rewrite a document so that navigation and sub-resources go through the relay.

    Args:
        html: The decoded upstream document. Malformed markup is tolerated.
        base_url: Absolute URL the document was served from; every relative
            reference is resolved against it and the toolbar shows it.

    Returns:
        The serialized, rewritten document.
    """
    with tracer.start_as_current_span("rewrite_html") as span:
        soup = BeautifulSoup(html, "html.parser")

        rewritten = rewrite_attributes(soup, base_url)
        rewrite_style_blocks(soup, base_url)
        injected = inject_toolbar(soup, base_url)

        span.set_attribute("rewrite.attributes", rewritten)
        span.set_attribute("rewrite.toolbar", injected)
        logger.debug(
            f"[Rewrite] {rewritten} references rewritten, toolbar injected: {injected}"
        )
        return str(soup)
