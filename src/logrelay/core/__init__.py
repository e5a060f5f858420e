"""
Core business logic components.

This package contains the ingestion and processing components:
- Submission normalizer (acceptance boundary)
- Redaction and processing delay
- Buffer and store clients
- Record worker and its delivery loop
- Metrics and health checks
"""
