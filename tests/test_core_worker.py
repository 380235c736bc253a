"""Tests for EngineWorker (QThread hosting the engine loop)."""

from collections.abc import Generator

import pytest
from pytestqt.qtbot import QtBot

from beoctrl.core.config import ConfigManager
from beoctrl.core.controller import Controller
from beoctrl.core.worker import EngineWorker
from beoctrl.models.device import Device
from beoctrl.models.playback import PlayMode
from fakes import FakeNetwork


class TestEngineWorkerBasics:
    """Test basic EngineWorker functionality."""

    def test_initialization(self, config: ConfigManager) -> None:
        """Test worker initialization."""
        worker = EngineWorker(config)
        assert worker.controller is None
        assert not worker.is_running_loop
        assert worker._should_run is True

    def test_stop_sets_flag(self, config: ConfigManager) -> None:
        """Test that stop sets the should_run flag."""
        worker = EngineWorker(config)
        worker.stop()
        assert worker._should_run is False

    def test_calls_safe_without_loop(self, config: ConfigManager) -> None:
        """Test commands are dropped while the loop is not running."""
        worker = EngineWorker(config)
        assert worker.submit(lambda c: c.toggle_play()) is None
        worker.select_device(Device(id="d1", name="Kitchen", address="10.0.0.1"))
        worker.toggle_play()
        worker.seek(10)
        worker.set_volume(40)
        worker.next_track()
        worker.previous_track()
        worker.change_source("radio:1")
        worker.set_play_mode(PlayMode.SHUFFLE)
        worker.cycle_play_mode()
        worker.select_playlist("pl1")
        worker.select_track("a")
        worker.add_device("Kitchen", "10.0.0.1")
        worker.delete_device("d1")


@pytest.fixture
def running_worker(
    qtbot: QtBot, config: ConfigManager, network: FakeNetwork
) -> Generator[EngineWorker, None, None]:
    """Start a worker against the fake network and stop it afterwards."""
    worker = EngineWorker(config, restore_session=False, transport=network.transport)
    with qtbot.wait_signal(worker.ready, timeout=5000):
        worker.start()
    yield worker
    worker.stop()
    assert worker.wait(5000)


class TestEngineWorkerRunning:
    """Test a running worker."""

    def test_ready_provides_controller(self, running_worker: EngineWorker) -> None:
        """Test the controller is available once ready fires."""
        assert isinstance(running_worker.controller, Controller)
        assert running_worker.is_running_loop

    def test_submit_runs_on_engine_loop(
        self, running_worker: EngineWorker, network: FakeNetwork
    ) -> None:
        """Test submitted coroutines run and return their result."""
        network.add("10.0.0.1")
        future = running_worker.submit(lambda c: c.add_device("Kitchen", "10.0.0.1"))
        assert future is not None
        device = future.result(timeout=5)

        controller = running_worker.controller
        assert controller is not None
        assert controller.device is not None
        assert controller.device.id == device.id
        assert controller.is_online

    def test_failed_request_reported(self, running_worker: EngineWorker, qtbot: QtBot) -> None:
        """Test an exception in a request is emitted, not lost."""

        async def boom(controller: Controller) -> None:
            raise RuntimeError("boom")

        with qtbot.wait_signal(running_worker.error_occurred, timeout=5000) as blocker:
            running_worker.submit(boom)
        assert str(blocker.args[0]) == "boom"

    def test_stop_finishes_thread(self, running_worker: EngineWorker, qtbot: QtBot) -> None:
        """Test stop() ends the loop and clears the controller."""
        with qtbot.wait_signal(running_worker.finished, timeout=5000):
            running_worker.stop()
        assert running_worker.controller is None
        assert not running_worker.is_running_loop
