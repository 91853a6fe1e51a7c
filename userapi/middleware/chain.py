"""
User API Backend — Per-Route Step Chains
==========================================

What:  Runs a route's steps in their declared order.
Why:   The order of breadcrumb, validation, authentication and controller is
       part of each route's contract (e.g. a PUT with a bad body must fail
       before credentials are checked). FastAPI resolves dependencies before
       the body, so the ordering is made explicit here instead.
How:   A step is an async callable taking the RequestContext. It returns None
       to let the next step run, or a Response to finish the request. A
       failing step raises a UserAPIError; the global exception handlers
       turn it into the error response.

Stages:
    matched → logging → validating → authenticating → controller → responded
    Any failure jumps straight to `responded`.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

MATCHED = "matched"
LOGGING = "logging"
VALIDATING = "validating"
AUTHENTICATING = "authenticating"
CONTROLLER = "controller-executing"
RESPONDED = "responded"


@dataclass
class RequestContext:
    """State shared by the steps of one request."""

    request: Request
    db: AsyncSession
    payload: Any = None
    user: Any = None
    stage: str = MATCHED


Step = Callable[[RequestContext], Awaitable[Optional[Response]]]


def stage(name: str) -> Callable[[Step], Step]:
    """Tags a step with the pipeline stage it represents."""
    def decorate(step: Step) -> Step:
        step.stage = name
        return step
    return decorate


class Chain:
    """An ordered, immutable list of steps ending in a controller."""

    def __init__(self, *steps: Step):
        if not steps:
            raise ValueError("a chain needs at least one step")
        self.steps: Sequence[Step] = tuple(steps)

    async def run(self, ctx: RequestContext) -> Response:
        try:
            for step in self.steps:
                ctx.stage = getattr(step, "stage", CONTROLLER)
                response = await step(ctx)
                if response is not None:
                    return response
        finally:
            ctx.stage = RESPONDED
        raise RuntimeError("chain finished without producing a response")


def breadcrumb(message: str) -> Step:
    """A step that logs `message` at INFO and always continues."""
    @stage(LOGGING)
    async def log_breadcrumb(ctx: RequestContext) -> None:
        logger.info(message)
        return None
    return log_breadcrumb
