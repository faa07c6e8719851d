"""Tests for the backend failure retry helper."""

import asyncio
from unittest.mock import patch

import pytest

from puppet_app.errors import BackendFailureError, NotFoundError
from puppet_app.puppet.mock import PuppetMock
from puppet_app.puppet.models import Receiver
from puppet_app.utils import call_with_retry


class FlakyCall:
    """Coroutine callable failing a fixed number of times."""

    def __init__(self, failures, error_cls=BackendFailureError):
        self.failures = failures
        self.error_cls = error_cls
        self.calls = 0

    async def __call__(self, value):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error_cls("flaky")
        return value


class TestCallWithRetry:
    """Test retry semantics."""

    def test_success_first_try(self):
        """No retries when the first call succeeds."""
        call = FlakyCall(failures=0)
        assert asyncio.run(call_with_retry(call, "ok", retry_delay=0)) == "ok"
        assert call.calls == 1

    def test_retries_backend_failures(self):
        """BackendFailureError is retried until success."""
        call = FlakyCall(failures=2)
        assert asyncio.run(call_with_retry(call, "ok", max_retries=3, retry_delay=0)) == "ok"
        assert call.calls == 3

    def test_gives_up_after_max_retries(self):
        """The last failure propagates with retry bookkeeping."""
        call = FlakyCall(failures=10)

        with pytest.raises(BackendFailureError) as exc_info:
            asyncio.run(call_with_retry(call, "ok", max_retries=2, retry_delay=0))

        assert call.calls == 3
        assert exc_info.value.retry_count == 2
        assert exc_info.value.max_retries == 2

    def test_never_retries_not_found(self):
        """Payload errors propagate on the first attempt."""
        call = FlakyCall(failures=1, error_cls=NotFoundError)

        with pytest.raises(NotFoundError):
            asyncio.run(call_with_retry(call, "ok", retry_delay=0))
        assert call.calls == 1

    def test_backoff_delays(self):
        """Delays grow by the backoff factor."""
        call = FlakyCall(failures=3)
        delays = []

        async def fake_sleep(delay):
            delays.append(delay)

        with patch("puppet_app.utils.retry.asyncio.sleep", side_effect=fake_sleep):
            asyncio.run(call_with_retry(call, "ok", max_retries=3, retry_delay=0.5, backoff=2.0))

        assert delays == [0.5, 1.0, 2.0]


class TestRetryAroundPuppetCalls:
    """Test the helper the way the automation layer uses it."""

    def test_flaky_send_is_retried(self, mock_options):
        """A transient transport failure on send is retried once and stored once."""
        class FlakySendPuppet(PuppetMock):
            attempts = 0

            async def message_send_text(self, receiver, text):
                self.attempts += 1
                if self.attempts == 1:
                    raise BackendFailureError("socket reset", operation="message_send_text")
                await super().message_send_text(receiver, text)

        puppet = FlakySendPuppet(mock_options)

        async def scenario():
            await puppet.start()
            puppet.mock_contact("contact_1", "Alice")
            await call_with_retry(puppet.message_send_text, Receiver(contact_id="contact_1"),
                                  "hello", retry_delay=0)
            texts = [puppet.messages[mid].get("text") for mid in await puppet.message_list()]
            await puppet.stop()
            return texts

        texts = asyncio.run(scenario())
        assert puppet.attempts == 2
        assert texts.count("hello") == 1
