import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "webrelay")

# Path the relay entry point is mounted on; wrapped links and the toolbar
# form both point here.
PROXY_ENTRY_PATH = os.environ.get("PROXY_ENTRY_PATH", "/api/proxy")

UPSTREAM_TIMEOUT = float(os.getenv("UPSTREAM_TIMEOUT", "30"))
UPSTREAM_MAX_REDIRECTS = int(os.getenv("UPSTREAM_MAX_REDIRECTS", "10"))

DEFAULT_USER_AGENT = os.getenv(
    "DEFAULT_USER_AGENT",
    "Mozilla/5.0 (Proxy) AppleWebKit/537.36 (KHTML, like Gecko) Chrome Safari",
)
DEFAULT_ACCEPT = os.getenv("DEFAULT_ACCEPT", "*/*")
DEFAULT_ACCEPT_LANGUAGE = os.getenv("DEFAULT_ACCEPT_LANGUAGE", "en-US,en;q=0.9")

HISTORY_SIZE = int(os.getenv("HISTORY_SIZE", "8"))

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")
