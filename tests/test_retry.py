import pytest

from llm_preflight.retry import with_retry


class Flaky:
    def __init__(self, failures, value="ok"):
        self.failures = failures
        self.value = value
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise RuntimeError(f"failure {self.calls}")
        return self.value


@pytest.mark.asyncio
async def test_first_attempt_success_does_not_sleep(sleep):
    result = await with_retry(Flaky(0), max_retries=2, base_delay=0.5, sleep=sleep)

    assert result.success
    assert result.result == "ok"
    assert result.attempts == 1
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_exponential_backoff_between_attempts(sleep):
    op = Flaky(2)
    result = await with_retry(op, max_retries=2, base_delay=0.5, sleep=sleep)

    assert result.success
    assert result.attempts == 3
    assert sleep.delays == [0.5, 1.0]


@pytest.mark.asyncio
async def test_exhausted_retries_return_last_error(sleep):
    op = Flaky(10)
    result = await with_retry(op, max_retries=2, base_delay=0.5, sleep=sleep)

    assert not result.success
    assert result.result is None
    assert result.error == "failure 3"
    assert isinstance(result.exception, RuntimeError)
    assert result.attempts == 3
    assert op.calls == 3
    # no sleep after the final attempt
    assert sleep.delays == [0.5, 1.0]


@pytest.mark.asyncio
async def test_zero_retries_means_single_attempt(sleep):
    op = Flaky(1)
    result = await with_retry(op, max_retries=0, sleep=sleep)

    assert not result.success
    assert op.calls == 1
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_on_retry_called_before_each_retry(sleep):
    seen = []
    await with_retry(
        Flaky(5),
        max_retries=3,
        base_delay=1.0,
        sleep=sleep,
        on_retry=lambda attempt, exc: seen.append((attempt, str(exc))),
    )
    assert seen == [(1, "failure 1"), (2, "failure 2"), (3, "failure 3")]
    assert sleep.delays == [1.0, 2.0, 4.0]


@pytest.mark.asyncio
async def test_empty_exception_message_falls_back_to_type_name(sleep):
    async def op():
        raise TimeoutError()

    result = await with_retry(op, max_retries=0, sleep=sleep)
    assert result.error == "TimeoutError"
