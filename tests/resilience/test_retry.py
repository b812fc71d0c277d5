"""Tests for the resilient_api_call retry decorator."""

from __future__ import annotations

import warnings

import pytest

from quote_chat.resilience.retry import resilient_api_call


class TransientError(Exception):
    pass


class PermanentError(Exception):
    pass


@pytest.fixture(autouse=True)
def _no_backoff(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("time.sleep", lambda _seconds: None)


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, TransientError)


class TestResilientApiCall:
    """Tests for retry classification and exhaustion."""

    def test_retries_transient_until_success(self) -> None:
        calls: list[int] = []

        @resilient_api_call("test.flaky", is_transient=_is_transient)
        def flaky() -> str:
            calls.append(1)
            if len(calls) < 3:
                raise TransientError()
            return "ok"

        assert flaky() == "ok"
        assert len(calls) == 3

    def test_reraises_after_attempts(self) -> None:
        calls: list[int] = []

        @resilient_api_call("test.down", is_transient=_is_transient, attempts=2)
        def down() -> None:
            calls.append(1)
            raise TransientError()

        with pytest.raises(TransientError):
            down()
        assert len(calls) == 2

    def test_permanent_error_raises_immediately(self) -> None:
        calls: list[int] = []

        @resilient_api_call("test.bad", is_transient=_is_transient)
        def bad() -> None:
            calls.append(1)
            raise PermanentError()

        with pytest.raises(PermanentError):
            bad()
        assert len(calls) == 1

    def test_decorating_emits_no_deprecation_warning(self) -> None:
        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)

            @resilient_api_call("test.quiet", is_transient=_is_transient)
            def quiet() -> str:
                return "ok"

        assert quiet() == "ok"
