"""Tests for queue resolution and play-mode advance rules."""

import random

import pytest
from pytestqt.qtbot import QtBot

from beoctrl.core.queue import STOP, Direction, QueueController, advance, resolve_queue
from beoctrl.models.playback import PlayMode
from beoctrl.models.playlist import Playlist
from beoctrl.models.track import Track


class TestResolveQueue:
    """Tests for resolve_queue."""

    def test_drops_unknown_ids_in_order(self, tracks: list[Track]) -> None:
        """Test ids missing from the catalogue are dropped, order kept."""
        playlist = Playlist(id="p", name="P", track_ids=("a", "b", "x", "c"))
        assert [t.id for t in resolve_queue(playlist, tracks)] == ["a", "b", "c"]

    def test_duplicates_kept(self, tracks: list[Track]) -> None:
        """Test duplicate ids resolve to repeated tracks."""
        playlist = Playlist(id="p", name="P", track_ids=("c", "a", "c"))
        assert [t.id for t in resolve_queue(playlist, tracks)] == ["c", "a", "c"]

    def test_empty(self, tracks: list[Track]) -> None:
        """Test an empty playlist resolves to an empty queue."""
        assert resolve_queue(Playlist(id="p", name="P"), tracks) == []


class TestAdvance:
    """Tests for advance()."""

    def test_sequential_forward(self, tracks: list[Track]) -> None:
        """Test sequential forward moves to the next index."""
        assert advance(Direction.FORWARD, tracks[0], tracks, PlayMode.SEQUENTIAL) == tracks[1]

    def test_sequential_forward_stops_at_end(self, tracks: list[Track]) -> None:
        """Test sequential forward at the last index signals STOP."""
        assert advance(Direction.FORWARD, tracks[2], tracks, PlayMode.SEQUENTIAL) is STOP

    def test_sequential_backward_wraps(self, tracks: list[Track]) -> None:
        """Test backward at index 0 wraps to the end."""
        assert advance(Direction.BACKWARD, tracks[0], tracks, PlayMode.SEQUENTIAL) == tracks[2]

    @pytest.mark.parametrize("mode", [PlayMode.SEQUENTIAL, PlayMode.REPEAT_LIST, PlayMode.REPEAT_ONE])
    def test_backward_never_stops(self, tracks: list[Track], mode: PlayMode) -> None:
        """Test backward steps back one in every non-shuffle mode."""
        assert advance(Direction.BACKWARD, tracks[1], tracks, mode) == tracks[0]

    def test_repeat_list_wraps(self, tracks: list[Track]) -> None:
        """Test repeat-list forward wraps to the start."""
        assert advance(Direction.FORWARD, tracks[2], tracks, PlayMode.REPEAT_LIST) == tracks[0]

    @pytest.mark.parametrize("index", [0, 1, 2])
    def test_repeat_one_replays(self, tracks: list[Track], index: int) -> None:
        """Test repeat-one forward returns the same track from any index."""
        current = tracks[index]
        assert advance(Direction.FORWARD, current, tracks, PlayMode.REPEAT_ONE) is current
        assert advance(Direction.FORWARD, current, tracks[:1], PlayMode.REPEAT_ONE) is current

    def test_shuffle_in_range(self, tracks: list[Track]) -> None:
        """Test shuffle always picks a queued track."""
        rng = random.Random(7)
        for direction in Direction:
            for _ in range(50):
                picked = advance(direction, tracks[0], tracks, PlayMode.SHUFFLE, rng=rng)
                assert picked in tracks

    def test_shuffle_reaches_every_track(self, tracks: list[Track]) -> None:
        """Test shuffle is independent of the current index."""
        rng = random.Random(1)
        picked = {
            advance(Direction.FORWARD, tracks[0], tracks, PlayMode.SHUFFLE, rng=rng).id  # type: ignore[union-attr]
            for _ in range(100)
        }
        assert picked == {"a", "b", "c"}

    def test_empty_queue_stops(self) -> None:
        """Test an empty queue has nothing to play."""
        for mode in PlayMode:
            assert advance(Direction.FORWARD, None, [], mode) is STOP

    def test_current_not_in_queue(self, tracks: list[Track]) -> None:
        """Test a device-reported track outside the queue."""
        stranger = Track(id="zz", title="Radio song")
        assert advance(Direction.FORWARD, stranger, tracks, PlayMode.SEQUENTIAL) == tracks[0]
        assert advance(Direction.BACKWARD, stranger, tracks, PlayMode.SEQUENTIAL) == tracks[2]
        assert advance(Direction.FORWARD, stranger, tracks, PlayMode.REPEAT_ONE) is stranger

    def test_no_current_track(self, tracks: list[Track]) -> None:
        """Test advancing with nothing playing starts at the first track."""
        assert advance(Direction.FORWARD, None, tracks, PlayMode.SEQUENTIAL) == tracks[0]
        assert advance(Direction.FORWARD, None, tracks, PlayMode.REPEAT_ONE) == tracks[0]

    def test_stop_is_falsy(self) -> None:
        """Test the STOP sentinel."""
        assert not STOP
        assert repr(STOP) == "STOP"


class TestQueueController:
    """Tests for QueueController."""

    def test_load_playlist(
        self, tracks: list[Track], playlist: Playlist, qtbot: QtBot
    ) -> None:
        """Test loading emits the resolved queue."""
        queue = QueueController()
        with qtbot.wait_signal(queue.queue_changed, timeout=100) as blocker:
            queue.load_playlist(playlist, tracks)
        assert [t.id for t in blocker.args[0]] == ["a", "b", "c"]
        assert len(queue) == 3
        assert queue.playlist == playlist

    def test_refresh_after_rescan(self, tracks: list[Track], playlist: Playlist) -> None:
        """Test the queue follows catalogue changes."""
        queue = QueueController()
        queue.load_playlist(playlist, tracks[:2])
        assert len(queue) == 2
        queue.refresh(tracks)
        assert [t.id for t in queue.tracks] == ["a", "b", "c"]

    def test_find_and_clear(self, tracks: list[Track], playlist: Playlist) -> None:
        """Test lookup by id and unloading."""
        queue = QueueController()
        queue.load_playlist(playlist, tracks)
        assert queue.find("b") == tracks[1]
        assert queue.find("nope") is None
        queue.clear()
        assert len(queue) == 0
        assert queue.playlist is None
        assert queue.refresh(tracks) == []

    def test_next_previous(self, tracks: list[Track], playlist: Playlist) -> None:
        """Test next/previous delegate to advance()."""
        queue = QueueController(rng=random.Random(3))
        queue.load_playlist(playlist, tracks)
        assert queue.next_track(tracks[0], PlayMode.SEQUENTIAL) == tracks[1]
        assert queue.next_track(tracks[2], PlayMode.SEQUENTIAL) is STOP
        assert queue.previous_track(tracks[0], PlayMode.REPEAT_LIST) == tracks[2]
