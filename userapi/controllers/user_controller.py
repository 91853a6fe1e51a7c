"""
User API Backend — User Controllers
=====================================

The terminal step of each user route. By the time a controller runs, the
chain has already put a validated body on `ctx.payload` and, where the route
requires it, the authenticated user on `ctx.user`.

    create_user  → 201 + user JSON
    get_user     → 200 + user JSON
    update_user  → 204, no body
"""

import logging

from fastapi.responses import JSONResponse
from starlette.responses import Response

from userapi.middleware.chain import RequestContext
from userapi.schemas.user import UserResponse
from userapi.services.user_service import user_service

logger = logging.getLogger(__name__)


def _user_json(user) -> dict:
    return UserResponse.model_validate(user).model_dump(mode="json")


async def create_user(ctx: RequestContext) -> Response:
    user = await user_service.create_user(ctx.db, ctx.payload)
    return JSONResponse(status_code=201, content=_user_json(user))


async def get_user(ctx: RequestContext) -> Response:
    return JSONResponse(status_code=200, content=_user_json(ctx.user))


async def update_user(ctx: RequestContext) -> Response:
    await user_service.update_user(ctx.db, ctx.user, ctx.payload)
    return Response(status_code=204)
