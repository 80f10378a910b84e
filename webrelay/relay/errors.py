from typing import Optional


class RelayError(Exception):
    """A request the relay cannot serve. ``str(error)`` is the plain-text response body."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class MissingTarget(RelayError):
    status_code = 400

    def __init__(self):
        super().__init__("Missing ?url= parameter")


class InvalidURL(RelayError):
    status_code = 400

    def __init__(self, target: str = ""):
        super().__init__("Invalid URL")
        self.target = target


class UnsupportedScheme(RelayError):
    status_code = 400

    def __init__(self, scheme: str = ""):
        super().__init__("Only http/https supported")
        self.scheme = scheme


class UpstreamUnreachable(RelayError):
    status_code = 502

    def __init__(self, detail: str, cause: Optional[BaseException] = None):
        super().__init__(f"Upstream fetch failed: {detail}")
        self.detail = detail
        self.cause = cause
