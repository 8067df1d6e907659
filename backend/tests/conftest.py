"""Pytest configuration and fixtures."""
import os
import sys
from pathlib import Path

# Ensure backend root is on path when running pytest from repo root or backend
backend = Path(__file__).resolve().parent.parent
if str(backend) not in sys.path:
    sys.path.insert(0, str(backend))

# The API test modules share one in-memory limiter; keep it out of the way.
os.environ.setdefault("RATE_LIMIT", "10000/minute")
os.environ.setdefault("API_KEY_REQUIRED", "false")
os.environ.setdefault("OPENWEATHER_API_KEY", "")
