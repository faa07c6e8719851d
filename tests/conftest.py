"""Pytest configuration and shared fixtures."""

import pytest

from puppet_app.config.defaults import PuppetOptions
from puppet_app.puppet.mock import PuppetMock


@pytest.fixture
def mock_options() -> PuppetOptions:
    """Options for a quiet mock session: no pretend inbound messages."""
    return PuppetOptions(
        name="test-puppet",
        backend="mock",
        watchdog_timeout_seconds=30,
        backend_options={"message_interval_seconds": None},
    )


@pytest.fixture
def puppet(mock_options: PuppetOptions) -> PuppetMock:
    """Fresh mock puppet in the OFF state."""
    return PuppetMock(mock_options)


@pytest.fixture
def recorded_events():
    """Factory attaching a recorder to a puppet's events."""

    def attach(puppet, *event_names):
        recorded = []
        for event_name in event_names:
            puppet.on(event_name, lambda *args, _name=event_name: recorded.append((_name, args)))
        return recorded

    return attach
