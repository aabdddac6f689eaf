# Middleware package init
"""
Guildhall Backend — Middleware Package
========================================

What:  Cross-cutting request handling plus the session/auth gate.

Middleware Chain (outermost first):
    Request → [Request ID] → [Access Log] → [GZip] → [CORS] → Route Handler

Auth is not middleware: it is a FastAPI dependency (auth.get_current_member)
so that it shares the request's database session and only runs on routes
that declare it. /health and the API docs stay unauthenticated.
"""
