"""
Exception formatting and logging helpers for the relay error path.

Upstream transport errors end up in a response body and in the logs. Neither
of those may fail just because an exception object is odd (empty message,
broken ``__str__``, exception groups raised from task groups).
"""

import logging


def _safe_str(obj) -> str:
    """
    Convert an object to string without ever raising.

    Args:
        obj: The object to convert

    Returns:
        ``str(obj)``, falling back to ``repr`` and finally to the type name
    """
    try:
        return str(obj)
    except Exception:
        try:
            return repr(obj)
        except Exception:
            return f"<{type(obj).__name__} object (string conversion failed)>"


def _sub_exceptions(exception) -> list:
    try:
        return list(getattr(exception, "exceptions", None) or [])
    except Exception:
        return []


def format_exception_message(exception: BaseException) -> str:
    """
    Human readable message for an exception.

    Empty messages (``httpx.ReadTimeout()`` has none) fall back to the class
    name, exception groups list their members.
    """
    if exception is None:
        return "None"

    message = _safe_str(exception).strip() or type(exception).__name__

    members = _sub_exceptions(exception)
    if members:
        parts = [
            f"{type(sub).__name__}: {_safe_str(sub).strip() or type(sub).__name__}"
            for sub in members
        ]
        return f"{message} (Sub-exceptions: {'; '.join(parts)})"
    return message


def log_exception_with_details(
    logger: logging.Logger,
    prefix: str,
    exception: BaseException,
    level: int = logging.ERROR,
) -> None:
    """
    Log an exception, one extra line per member of an exception group.

    Never raises, even when the logger or the exception misbehave.

    Args:
        logger: The logger instance to use
        prefix: Prefix for the log message (e.g. "[Relay]")
        exception: The exception to log
        level: The logging level to use (default: ERROR)
    """
    try:
        members = _sub_exceptions(exception)
        if not members:
            logger.log(
                level,
                f"{prefix} Exception: {format_exception_message(exception)}",
                exc_info=exception if exception is not None else False,
            )
            return

        logger.log(
            level,
            f"{prefix} Exception with {len(members)} sub-exceptions: {_safe_str(exception)}",
        )
        for i, sub in enumerate(members):
            logger.log(
                level,
                f"{prefix} Sub-exception {i + 1}: {type(sub).__name__}: {_safe_str(sub)}",
                exc_info=sub,
            )
    except Exception:
        try:
            logger.log(logging.ERROR, f"{prefix} Exception (logging failed)")
        except Exception:
            pass
