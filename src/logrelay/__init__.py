"""
LogRelay - buffered log ingestion with asynchronous redaction.

A FastAPI-based service that normalizes JSON or raw-text log submissions
into envelopes, buffers them on a durable queue, and processes them in a
worker that redacts sensitive fragments and persists the result.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
