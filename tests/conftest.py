"""
Shared test fixtures for Keel.
"""

import pytest

from keel import Container, RecordingListener
from keel.testing import RecordingCompletion


@pytest.fixture
def recording_completion() -> RecordingCompletion:
    return RecordingCompletion()


@pytest.fixture
def container(recording_completion) -> Container:
    """Container wired with a recording completion primitive."""
    return Container(recording_completion)


@pytest.fixture
def recorder(container) -> RecordingListener:
    listener = RecordingListener()
    container.diagnostics.add_listener(listener)
    return listener
