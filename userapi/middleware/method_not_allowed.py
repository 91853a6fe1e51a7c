"""
User API Backend — Method Not Allowed Handler
===============================================

What:  Answers 405 for every method a path does not bind.
How:   Registers a catch-all route on the path for exactly the methods the
       path leaves unbound. Bound methods therefore always reach their own
       handlers; this one only sees the rest (HEAD and OPTIONS included).
       Starlette alone would answer 405 too, but its Allow header only lists
       the methods of a single route, not of the whole path.
"""

from typing import Iterable

from fastapi import APIRouter, Request

from userapi.exceptions import MethodNotAllowedError

HTTP_METHODS = ("GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "TRACE")


def method_not_allowed(router: APIRouter, path: str, allowed: Iterable[str]) -> None:
    """Binds the 405 handler for `path` on `router`."""
    allowed_methods = [method.upper() for method in allowed]
    unbound = [method for method in HTTP_METHODS if method not in allowed_methods]

    async def reject(request: Request) -> None:
        raise MethodNotAllowedError(request.method, allowed_methods)

    router.add_api_route(
        path,
        reject,
        methods=unbound,
        include_in_schema=False,
        name=f"method_not_allowed:{path or '/'}",
    )
