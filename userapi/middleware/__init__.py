# Middleware package init
"""
User API Backend — Middleware Package
=======================================

Two kinds of request processing live here.

App-wide Starlette middleware (every request):
    Request → [Request ID] → [Access Log] → [GZip] → [CORS] → Router

Per-route steps (run by middleware.chain.Chain in declared order):
    breadcrumb → validate_payload → authenticate → controller
    method_not_allowed binds the 405 handler for unbound methods.
"""
