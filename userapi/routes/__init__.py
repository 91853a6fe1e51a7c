# Routes package init
"""
User API Backend — API Routes Package
=======================================

Route Inventory:
    - users.py:    POST /v1/user, GET /v1/user/self, PUT /v1/user/self
                   (405 for every other method on those paths)
    - health.py:   GET /healthz
    - metrics.py:  GET /metrics

Routes stay thin: they build the RequestContext and hand it to the
route's step chain. Business logic belongs in controllers and services.
"""
