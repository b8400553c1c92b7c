"""Dispatch FastAPI application.

Serves the order lifecycle and delivery endpoints and the live tracking
socket. Commands are processed synchronously within each request.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# Initialized at module level so uvicorn workers share the domain.
# PROTEAN_ENV selects the config overlay; LOG_DIR adds rotating log files.
from dispatch.api.application import create_app
from dispatch.domain import dispatch
from dispatch.utils.logging import configure_logging

configure_logging()
dispatch.init()

app = create_app(dispatch)
