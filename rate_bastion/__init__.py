"""Per-key token bucket rate limiting over a shared key-value store."""

__version__ = "0.1.0"
