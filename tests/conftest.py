"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It pins the environment so settings never pick up a developer's .env file
or a real Redis server.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"

os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("LIMITER_ENABLED", "true")
os.environ.setdefault("LIMITER_CAPACITY", "10")
os.environ.setdefault("LIMITER_REFILL_INTERVAL_SECONDS", "60")
os.environ.setdefault("LOG_LEVEL", "WARNING")
