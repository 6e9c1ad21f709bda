# Middleware package init
"""
AppHub Backend — Middleware Package
====================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain:
    Request → [Request ID] → [Access Log] → [GZip] → [CORS] → Route Handler

    - Request ID first so every log line of the request (including the access
      line and error handler lines) carries the same correlation id
    - Access log measures the full handler duration and the final status
"""
