"""Global pytest configuration."""

import os

# Keep tests on in-memory storage and surface handler errors, before any imports
os.environ.pop("TRIPSYNC_DATABASE_URL", None)
os.environ.setdefault("TRIPSYNC_BUS_RAISE_HANDLER_ERRORS", "true")
os.environ.setdefault("TRIPSYNC_PERSIST_DEBOUNCE_SECONDS", "0.05")
