"""
User API Backend — User Route Table
=====================================

What:  POST /v1/user, GET /v1/user/self, PUT /v1/user/self.
How:   Each route runs a fixed Chain of steps; every other method on the
       two paths gets a 405 with the path's Allow header.

    Path   Method  Chain
    ─────  ──────  ─────────────────────────────────────────────────────
    /      POST    breadcrumb → validate(UserCreate) → create_user
    /      other   405, Allow: POST
    /self  GET     breadcrumb → authenticate → get_user
    /self  PUT     breadcrumb → validate(UserUpdate) → authenticate → update_user
    /self  other   405, Allow: GET, PUT

The body is read by the validation step rather than declared as a FastAPI
body parameter; FastAPI would otherwise validate it after the dependencies,
i.e. after authentication. `openapi_extra` keeps the docs accurate.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import Response

from userapi.controllers import user_controller
from userapi.database import get_db_session
from userapi.middleware.auth import authenticate
from userapi.middleware.chain import Chain, RequestContext, breadcrumb
from userapi.middleware.method_not_allowed import method_not_allowed
from userapi.middleware.validate_payload import validate_payload
from userapi.schemas.user import ErrorResponse, UserCreate, UserResponse, UserUpdate

router = APIRouter(prefix="/v1/user", tags=["Users"])


def _json_body(schema) -> dict:
    return {
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": schema.model_json_schema()}},
        }
    }


CREATE_USER_CHAIN = Chain(
    breadcrumb("User creation request received"),
    validate_payload(UserCreate),
    user_controller.create_user,
)

GET_USER_CHAIN = Chain(
    breadcrumb("Fetch user request received"),
    authenticate,
    user_controller.get_user,
)

UPDATE_USER_CHAIN = Chain(
    breadcrumb("User update request received"),
    validate_payload(UserUpdate),
    authenticate,
    user_controller.update_user,
)


@router.post(
    "",
    status_code=201,
    response_model=UserResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Create a user",
    openapi_extra=_json_body(UserCreate),
)
async def create_user(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    return await CREATE_USER_CHAIN.run(RequestContext(request=request, db=db))


method_not_allowed(router, "", ["POST"])


@router.get(
    "/self",
    response_model=UserResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Get the authenticated user",
)
async def get_user(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    return await GET_USER_CHAIN.run(RequestContext(request=request, db=db))


@router.put(
    "/self",
    status_code=204,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
    summary="Update the authenticated user",
    openapi_extra=_json_body(UserUpdate),
)
async def update_user(
    request: Request,
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    return await UPDATE_USER_CHAIN.run(RequestContext(request=request, db=db))


method_not_allowed(router, "/self", ["GET", "PUT"])
