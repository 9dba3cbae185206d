"""
HealthFlux Backend — Middleware Package
========================================

Cross-cutting concerns applied to every request.

Middleware Chain:
    Request → [Request ID] → [Logging] → [CORS] → [GZip] → Route Handler

    Request ID runs first so the access log line and every error body carry
    the same correlation ID.
"""
