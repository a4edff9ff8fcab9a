"""Runtime settings, read from the environment once at import."""

import os

# Exchange rate API (free, no key)
EXCHANGE_RATE_API = os.environ.get("EXCHANGE_RATE_API", "https://open.er-api.com/v6/latest/USD")

# Droplist site and the text-extraction mirror used to get around blocked requests
DROPLIST_BASE_URL = os.environ.get("DROPLIST_BASE_URL", "https://www.supremecommunity.com").rstrip("/")
TEXT_PROXY_PREFIX = os.environ.get("TEXT_PROXY_PREFIX", "https://r.jina.ai/")

REQUEST_TIMEOUT = float(os.environ.get("REQUEST_TIMEOUT", "15"))

USER_AGENT = os.environ.get(
    "USER_AGENT",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
)

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"

FLASK_HOST = os.environ.get("FLASK_HOST", "127.0.0.1")
FLASK_PORT = int(os.environ.get("FLASK_PORT", "5000"))
FLASK_DEBUG = os.environ.get("FLASK_DEBUG", "False") == "True"
