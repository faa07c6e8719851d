"""
Error classification and propagation tests.

Covers the lifecycle/payload/backend hierarchy and how puppet operations
surface each kind of error to the caller.
"""

import asyncio

import pytest

from puppet_app.errors import (
    AlreadyOnError,
    AlreadyStartingError,
    BackendError,
    BackendFailureError,
    ConfigurationError,
    InvalidTransitionError,
    LifecycleError,
    MalformedPayloadError,
    NotFoundError,
    NotLoggedInError,
    PayloadError,
    PermissionDeniedError,
    UnsupportedError,
)


class TestErrorClassification:
    """Test error classification system."""

    def test_lifecycle_error_hierarchy(self):
        """Lifecycle misuse is never recoverable."""
        base_error = LifecycleError("base error")
        assert base_error.recoverable is False
        assert base_error.context == {}

        for error in (
            InvalidTransitionError("bad", current_state="off", attempted_transition="off"),
            AlreadyOnError("on"),
            AlreadyStartingError("starting"),
            NotLoggedInError("no identity", operation="logout"),
            ConfigurationError("bad options", errors=["x"]),
        ):
            assert isinstance(error, LifecycleError)
            assert error.recoverable is False

    def test_invalid_transition_fields(self):
        """InvalidTransitionError records where it happened."""
        error = InvalidTransitionError(
            "bad", current_state="pending_on", attempted_transition="off",
            context={"session": "p"}
        )
        assert error.current_state == "pending_on"
        assert error.attempted_transition == "off"
        assert error.context == {"session": "p"}

    def test_payload_error_hierarchy(self):
        """NotFound and MalformedPayload are recoverable payload errors."""
        not_found = NotFoundError("missing", entity_kind="room", entity_id="r1")
        assert isinstance(not_found, PayloadError)
        assert not_found.recoverable is True
        assert not_found.entity_kind == "room"
        assert not_found.entity_id == "r1"

        malformed = MalformedPayloadError("bad", entity_kind="contact",
                                          raw_payload={}, missing_fields=["id"])
        assert isinstance(malformed, PayloadError)
        assert malformed.recoverable is True
        assert malformed.missing_fields == ["id"]

    def test_backend_error_hierarchy(self):
        """Only BackendFailureError is retryable."""
        unsupported = UnsupportedError("nope", operation="contact_qrcode")
        denied = PermissionDeniedError("nope", operation="room_del", target_id="r1")
        failure = BackendFailureError("timeout", operation="room_list", retry_count=1)

        for error in (unsupported, denied, failure):
            assert isinstance(error, BackendError)

        assert unsupported.recoverable is False
        assert denied.recoverable is False
        assert denied.target_id == "r1"
        assert failure.recoverable is True
        assert failure.retry_count == 1
        assert failure.max_retries == 3

    def test_payload_errors_distinguishable_from_transport_failures(self):
        """Callers can catch payload errors without catching backend failures."""
        assert not issubclass(NotFoundError, BackendError)
        assert not issubclass(BackendFailureError, PayloadError)


class TestPuppetErrorPropagation:
    """Test error surfacing from puppet operations."""

    def test_logout_before_login(self, puppet):
        """logout() before any start fails with NotLoggedInError."""
        with pytest.raises(NotLoggedInError) as exc_info:
            asyncio.run(puppet.logout())
        assert exc_info.value.operation == "logout"

    def test_self_id_before_login(self, puppet):
        """self_id() requires a logged-in identity."""
        with pytest.raises(NotLoggedInError):
            puppet.self_id()

    def test_unknown_ids_raise_not_found_for_every_kind(self, puppet):
        """Raw fetch of an unknown id fails with NotFoundError for all kinds."""

        async def scenario():
            fetches = [
                puppet.contact_raw_payload,
                puppet.room_raw_payload,
                puppet.message_raw_payload,
                puppet.friendship_raw_payload,
            ]
            kinds = []
            for fetch in fetches:
                with pytest.raises(NotFoundError) as exc_info:
                    await fetch("unknown-id")
                kinds.append(exc_info.value.entity_kind)
            return kinds

        assert asyncio.run(scenario()) == ["contact", "room", "message", "friendship"]

    def test_contact_qrcode_unsupported_for_self(self, puppet):
        """Self QR code is not supported by the mock backend."""

        async def scenario():
            await puppet.start()
            try:
                with pytest.raises(UnsupportedError):
                    await puppet.contact_qrcode(puppet.self_id())
                with pytest.raises(PermissionDeniedError):
                    await puppet.contact_qrcode("someone-else")
            finally:
                await puppet.stop()

        asyncio.run(scenario())

    def test_malformed_payload(self, puppet):
        """Parsers reject raw payloads that break the schema."""
        with pytest.raises(MalformedPayloadError) as exc_info:
            puppet.contact_raw_payload_parser({"name": "no id"})
        assert exc_info.value.missing_fields == ["id"]

        with pytest.raises(MalformedPayloadError):
            puppet.room_raw_payload_parser(["not", "a", "mapping"])

        with pytest.raises(MalformedPayloadError):
            puppet.message_raw_payload_parser({"id": "m1", "type": 6, "timestamp": 1})

        with pytest.raises(MalformedPayloadError):
            puppet.contact_raw_payload_parser({"id": "c1", "gender": 99})
