"""Rate limiting adapters.

This package provides the token bucket limiter and the abstraction the HTTP
layer depends on. Bucket state lives in an injected key-value store.
"""
