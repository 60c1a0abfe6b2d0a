"""Store FastAPI application.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload

Set STORE_LOG_DIR to also write rotating log files.
"""

import os

from store.api.app import create_app
from store.domain import store
from store.utils.logging import configure_logging

configure_logging(log_dir=os.getenv("STORE_LOG_DIR"))
store.init()

app = create_app()
