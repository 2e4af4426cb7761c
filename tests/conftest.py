"""Shared test configuration.

Settings are read once per process, so the environment is pinned here
before any test module imports the application.
"""

import os
import tempfile
from pathlib import Path

_TEST_DATA_DIR = Path(tempfile.mkdtemp(prefix="travelbuddy-tests-"))

os.environ["DATABASE_PATH"] = str(_TEST_DATA_DIR / "cache.db")
os.environ["REFERENCE_SOURCE"] = str(_TEST_DATA_DIR / "missing_catalog.md")
os.environ["TRACING_ENABLED"] = "false"
os.environ.pop("OPENROUTER_API_KEY", None)
