"""
User API Backend — Step Chain Tests
=====================================

What:  Ordering, short-circuiting and stage tracking of Chain.run.
"""

import logging
from unittest.mock import MagicMock

import pytest
from starlette.responses import Response

from userapi.exceptions import ValidationError
from userapi.middleware.chain import (
    AUTHENTICATING,
    CONTROLLER,
    LOGGING,
    MATCHED,
    RESPONDED,
    VALIDATING,
    Chain,
    RequestContext,
    breadcrumb,
    stage,
)


def _context():
    return RequestContext(request=MagicMock(), db=MagicMock())


def _recording_step(name, calls, stage_name=None, result=None, error=None):
    async def step(ctx):
        calls.append((name, ctx.stage))
        if error is not None:
            raise error
        return result
    if stage_name:
        step = stage(stage_name)(step)
    return step


class TestChain:

    def test_empty_chain_rejected(self):
        with pytest.raises(ValueError):
            Chain()

    @pytest.mark.asyncio
    async def test_steps_run_in_declared_order(self):
        calls = []
        final = Response(status_code=200)
        chain = Chain(
            _recording_step("log", calls, LOGGING),
            _recording_step("validate", calls, VALIDATING),
            _recording_step("auth", calls, AUTHENTICATING),
            _recording_step("controller", calls, result=final),
        )
        ctx = _context()
        assert ctx.stage == MATCHED

        response = await chain.run(ctx)

        assert response is final
        assert calls == [
            ("log", LOGGING),
            ("validate", VALIDATING),
            ("auth", AUTHENTICATING),
            ("controller", CONTROLLER),
        ]
        assert ctx.stage == RESPONDED

    @pytest.mark.asyncio
    async def test_failure_stops_the_chain(self):
        calls = []
        chain = Chain(
            _recording_step("validate", calls, VALIDATING, error=ValidationError("bad body")),
            _recording_step("auth", calls, AUTHENTICATING),
            _recording_step("controller", calls, result=Response()),
        )
        ctx = _context()

        with pytest.raises(ValidationError):
            await chain.run(ctx)

        assert [name for name, _ in calls] == ["validate"]
        assert ctx.stage == RESPONDED

    @pytest.mark.asyncio
    async def test_early_response_skips_remaining_steps(self):
        calls = []
        early = Response(status_code=304)
        chain = Chain(
            _recording_step("first", calls, result=early),
            _recording_step("second", calls, result=Response()),
        )

        assert await chain.run(_context()) is early
        assert [name for name, _ in calls] == ["first"]

    @pytest.mark.asyncio
    async def test_chain_without_response_is_an_error(self):
        chain = Chain(_recording_step("only", []))

        with pytest.raises(RuntimeError):
            await chain.run(_context())


class TestBreadcrumb:

    @pytest.mark.asyncio
    async def test_logs_and_continues(self, caplog):
        caplog.set_level(logging.INFO, logger="userapi.middleware.chain")
        step = breadcrumb("Fetch user request received")

        result = await step(_context())

        assert result is None
        assert step.stage == LOGGING
        assert caplog.records[-1].levelno == logging.INFO
        assert caplog.records[-1].getMessage() == "Fetch user request received"
