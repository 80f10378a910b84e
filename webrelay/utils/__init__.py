from typing import Optional


def shorten(text: Optional[str], limit: int = 200) -> str:
    """Clip long values (URLs, error texts) before they go into logs or span attributes."""
    if not text:
        return ""
    if len(text) <= limit:
        return text
    return f"{text[:limit]}...(+{len(text) - limit} chars)"
