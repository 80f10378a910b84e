from webrelay.rewrite.resolver import resolve, resolve_strict, UnresolvableReference
from webrelay.rewrite.wrapper import wrap, unwrap
from webrelay.rewrite.markup import rewrite_html, REWRITE_RULES

__all__ = [
    "resolve",
    "resolve_strict",
    "UnresolvableReference",
    "wrap",
    "unwrap",
    "rewrite_html",
    "REWRITE_RULES",
]
