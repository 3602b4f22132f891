"""Tests for the guarded call: timeout race, fallback and logging."""

import asyncio
import logging
import time

import pytest
from pydantic import ValidationError

from rfp_triage.core import guarded_call as guarded_module
from rfp_triage.core.guarded_call import (
    CauseKind,
    FallbackSchemaError,
    ResultKind,
    guarded_call,
)
from rfp_triage.core.metrics import metrics
from rfp_triage.core.schemas import AdjustPricingOutput

FALLBACK = AdjustPricingOutput(
    adjusted_pricing_strategy="Balanced (Fallback)",
    suggested_price_adjustment_percentage=0,
    reasoning="fallback",
)
VALUE = AdjustPricingOutput(
    adjusted_pricing_strategy="Premium",
    suggested_price_adjustment_percentage=3.5,
    reasoning="won the last three bids",
)


def _after(delay_s, value=None, error=None):
    async def operation():
        await asyncio.sleep(delay_s)
        if error is not None:
            raise error
        return value

    return operation


async def _never():
    await asyncio.get_running_loop().create_future()


def _records(caplog, name):
    return [r for r in caplog.records if r.name == name]


def test_success_returns_operation_value_unchanged():
    """Test that a fast operation's value comes back as-is."""
    result = asyncio.run(
        guarded_call(_after(0.01, VALUE), 500, FALLBACK, output_schema=AdjustPricingOutput)
    )
    assert result.kind is ResultKind.SUCCESS
    assert result.value is VALUE
    assert result.cause is None
    assert result.degraded is False


def test_success_is_not_logged_as_error(caplog):
    """Test that success emits nothing at warning level or above."""
    logger = logging.getLogger("test.guarded.success")
    with caplog.at_level(logging.DEBUG, logger="test.guarded.success"):
        asyncio.run(guarded_call(_after(0, VALUE), 500, FALLBACK, logger=logger))
    assert all(r.levelno < logging.WARNING for r in _records(caplog, "test.guarded.success"))


def test_timeout_returns_fallback_and_logs_once(caplog):
    """Test that an operation that never settles yields the fallback after the budget."""
    logger = logging.getLogger("test.guarded.timeout")
    with caplog.at_level(logging.WARNING, logger="test.guarded.timeout"):
        started = time.perf_counter()
        result = asyncio.run(guarded_call(_never, 50, FALLBACK, logger=logger, name="pricing"))
        elapsed = time.perf_counter() - started

    assert result.kind is ResultKind.FALLBACK_USED
    assert result.value == FALLBACK
    assert result.cause.kind is CauseKind.TIMEOUT
    assert result.degraded is True
    assert 0.045 <= elapsed < 1.0

    records = _records(caplog, "test.guarded.timeout")
    assert len(records) == 1
    assert records[0].levelno == logging.WARNING
    assert records[0].cause == "timeout"
    assert records[0].flow == "pricing"


def test_failure_returns_fallback_before_timeout(caplog):
    """Test that an immediate failure falls back without waiting for the budget."""
    logger = logging.getLogger("test.guarded.failure")
    error = RuntimeError("model unreachable")
    with caplog.at_level(logging.WARNING, logger="test.guarded.failure"):
        started = time.perf_counter()
        result = asyncio.run(guarded_call(_after(0, error=error), 2000, FALLBACK, logger=logger))
        elapsed = time.perf_counter() - started

    assert elapsed < 1.0
    assert result.value == FALLBACK
    assert result.cause.kind is CauseKind.OPERATION_ERROR
    assert result.cause.error is error
    assert "model unreachable" in result.cause.details

    records = _records(caplog, "test.guarded.failure")
    assert len(records) == 1
    assert records[0].levelno == logging.ERROR
    assert records[0].exc_info is not None
    assert records[0].error_type == "RuntimeError"


def test_late_success_does_not_replace_fallback():
    """Test that a success arriving after the timeout is never observed."""

    async def scenario():
        result = await guarded_call(_after(0.1, VALUE), 20, FALLBACK)
        await asyncio.sleep(0.2)
        return result

    result = asyncio.run(scenario())
    assert result.kind is ResultKind.FALLBACK_USED
    assert result.value is FALLBACK
    assert not guarded_module._ABANDONED


def test_late_failure_is_consumed():
    """Test that an abandoned operation failing later is dropped quietly."""

    async def scenario():
        result = await guarded_call(_after(0.05, error=ValueError("late")), 10, FALLBACK)
        await asyncio.sleep(0.1)
        return result

    result = asyncio.run(scenario())
    assert result.cause.kind is CauseKind.TIMEOUT
    assert not guarded_module._ABANDONED


def test_invalid_output_counts_as_operation_error():
    """Test that output violating the schema falls back."""
    result = asyncio.run(
        guarded_call(
            _after(0, {"adjustedPricingStrategy": "x"}),
            500,
            FALLBACK,
            output_schema=AdjustPricingOutput,
        )
    )
    assert result.value is FALLBACK
    assert result.cause.kind is CauseKind.OPERATION_ERROR
    assert isinstance(result.cause.error, ValidationError)


def test_valid_mapping_output_is_returned_unchanged():
    """Test that a conforming dict passes validation and is not converted."""
    payload = {
        "adjustedPricingStrategy": "Balanced",
        "suggestedPriceAdjustmentPercentage": 1,
        "reasoning": "steady win rate",
    }
    result = asyncio.run(
        guarded_call(_after(0, payload), 500, FALLBACK, output_schema=AdjustPricingOutput)
    )
    assert result.kind is ResultKind.SUCCESS
    assert result.value is payload


def test_operation_raising_synchronously_falls_back():
    """Test that an operation failing before returning an awaitable is handled."""

    def broken():
        raise KeyError("missing client config")

    result = asyncio.run(guarded_call(broken, 500, FALLBACK))
    assert result.cause.kind is CauseKind.OPERATION_ERROR


def test_non_awaitable_operation_falls_back():
    """Test that an operation returning a plain value is an operation error."""
    result = asyncio.run(guarded_call(lambda: VALUE, 500, FALLBACK))
    assert result.cause.kind is CauseKind.OPERATION_ERROR
    assert isinstance(result.cause.error, TypeError)


@pytest.mark.parametrize("timeout_ms", [0, -1, 1.5, True, None])
def test_rejects_invalid_timeout(timeout_ms):
    """Test that the budget must be a positive integer."""
    with pytest.raises(ValueError):
        asyncio.run(guarded_call(_after(0, VALUE), timeout_ms, FALLBACK))


def test_rejects_fallback_not_matching_schema():
    """Test that a malformed fallback is refused before the operation starts."""
    started = []

    async def operation():
        started.append(True)
        raise RuntimeError("unreachable")

    with pytest.raises(FallbackSchemaError):
        asyncio.run(
            guarded_call(operation, 100, {"bogus": 1}, output_schema=AdjustPricingOutput)
        )
    assert started == []


def test_mapping_fallback_is_returned_as_schema_instance():
    """Test that a conforming dict fallback comes back as an output model."""
    payload = FALLBACK.model_dump(by_alias=True)
    result = asyncio.run(
        guarded_call(_after(0, error=RuntimeError("down")), 100, payload, output_schema=AdjustPricingOutput)
    )
    assert result.kind is ResultKind.FALLBACK_USED
    assert isinstance(result.value, AdjustPricingOutput)
    assert result.value == FALLBACK


def test_success_wins_when_both_settle_together(monkeypatch):
    """Test that an operation done by the time the timer fires is a success."""
    real_wait = asyncio.wait

    async def slow_wait(fs, timeout=None):
        done, pending = await real_wait(fs, timeout=timeout)
        # Let the operation settle before the outcome is inspected.
        await asyncio.sleep(0.1)
        return done, pending

    monkeypatch.setattr(guarded_module.asyncio, "wait", slow_wait)
    result = asyncio.run(
        guarded_call(_after(0.03, VALUE), 10, FALLBACK, output_schema=AdjustPricingOutput)
    )
    assert result.kind is ResultKind.SUCCESS
    assert result.value is VALUE


def test_concurrent_calls_are_independent():
    """Test that one call timing out does not affect another."""

    async def scenario():
        return await asyncio.gather(
            guarded_call(_after(0.01, VALUE), 200, FALLBACK),
            guarded_call(_never, 30, FALLBACK),
        )

    fast, slow = asyncio.run(scenario())
    assert fast.kind is ResultKind.SUCCESS
    assert fast.value is VALUE
    assert slow.kind is ResultKind.FALLBACK_USED


def test_caller_cancellation_propagates():
    """Test that cancelling the awaiting caller is not swallowed."""

    async def scenario():
        task = asyncio.ensure_future(guarded_call(_never, 1000, FALLBACK))
        await asyncio.sleep(0.01)
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            return task.cancelled()
        return False

    assert asyncio.run(scenario()) is True


def test_metrics_count_outcomes():
    """Test that successes and both fallback causes are counted."""
    before = metrics.snapshot()
    asyncio.run(guarded_call(_after(0, VALUE), 200, FALLBACK))
    asyncio.run(guarded_call(_never, 10, FALLBACK))
    asyncio.run(guarded_call(_after(0, error=RuntimeError("x")), 200, FALLBACK))
    after = metrics.snapshot()
    assert after["guarded_successes"] == before["guarded_successes"] + 1
    assert after["fallbacks_timeout"] == before["fallbacks_timeout"] + 1
    assert after["fallbacks_error"] == before["fallbacks_error"] + 1
