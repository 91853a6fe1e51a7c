"""
User API Backend — Payload Validation Step
============================================

What:  Checks the JSON request body against a Pydantic model.
When:  Before any controller that relies on a validated body, and before
       authentication on routes that have both.
How:   Parses the body; malformed JSON, a non-object body or schema errors
       raise ValidationError (→ 400). On success the parsed model is stored
       on `ctx.payload` and the chain continues.
"""

import logging
from typing import Any, Dict, List, Type

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from userapi.exceptions import ValidationError
from userapi.middleware.chain import VALIDATING, RequestContext, Step, stage

logger = logging.getLogger(__name__)


def _field_errors(exc: PydanticValidationError) -> List[Dict[str, Any]]:
    return [
        {
            "field": ".".join(str(part) for part in error["loc"]) or "body",
            "message": error["msg"],
        }
        for error in exc.errors()
    ]


def validate_payload(schema: Type[BaseModel]) -> Step:
    """Builds a step validating the body against `schema`."""

    @stage(VALIDATING)
    async def validate(ctx: RequestContext) -> None:
        try:
            body = await ctx.request.json()
        except ValueError:
            # Covers empty bodies, JSONDecodeError and undecodable bytes
            raise ValidationError(message="Request body must be valid JSON")

        if not isinstance(body, dict):
            raise ValidationError(message="Request body must be a JSON object")

        try:
            ctx.payload = schema.model_validate(body)
        except PydanticValidationError as e:
            errors = _field_errors(e)
            logger.debug("Payload rejected by %s: %s", schema.__name__, errors)
            raise ValidationError(
                message="Request body failed validation",
                context={"errors": errors},
            )
        return None

    return validate
