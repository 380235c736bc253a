"""Test fixtures for beoctrl tests."""

import os
from collections.abc import Generator

import pytest

# Headless Qt for CI
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from beoctrl.core.config import ConfigManager  # noqa: E402
from beoctrl.models.device import Device  # noqa: E402
from beoctrl.models.playlist import Playlist  # noqa: E402
from beoctrl.models.track import Track  # noqa: E402
from fakes import FakeNetwork  # noqa: E402


@pytest.fixture
def network() -> FakeNetwork:
    """Return an empty fake network."""
    return FakeNetwork()


@pytest.fixture
def config() -> Generator[ConfigManager, None, None]:
    """Return a ConfigManager isolated from the user's settings."""
    config = ConfigManager("beoctrl-tests", "tests")
    config.clear()
    yield config
    config.clear()


@pytest.fixture
def tracks() -> list[Track]:
    """Return a three-track catalogue."""
    return [
        Track(id="a", title="Alpha", artist="Artist A", duration=180),
        Track(id="b", title="Bravo", artist="Artist B", duration=200),
        Track(id="c", title="Charlie", artist="Artist C", duration=240),
    ]


@pytest.fixture
def playlist() -> Playlist:
    """Return a playlist over the sample catalogue."""
    return Playlist(id="pl1", name="Evening", track_ids=("a", "b", "c"))


@pytest.fixture
def kitchen() -> Device:
    """Return a sample device."""
    return Device(id="d1", name="Kitchen", address="10.0.0.1")


@pytest.fixture
def lounge() -> Device:
    """Return a second sample device."""
    return Device(id="d2", name="Lounge", address="10.0.0.2")
