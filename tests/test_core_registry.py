"""Tests for DeviceRegistry and Library persistence."""

import pytest

from beoctrl.core.config import ConfigManager
from beoctrl.core.library import Library
from beoctrl.core.registry import DeviceRegistry
from beoctrl.models.playlist import Playlist, create_playlist
from beoctrl.models.track import Track


@pytest.fixture
def registry(config: ConfigManager) -> DeviceRegistry:
    return DeviceRegistry(config.settings)


@pytest.fixture
def library(config: ConfigManager) -> Library:
    return Library(config.settings)


class TestDeviceRegistry:
    """Tests for DeviceRegistry."""

    def test_initially_empty(self, registry: DeviceRegistry) -> None:
        """Test a new registry has no devices."""
        assert registry.list() == []

    def test_add_and_list(self, registry: DeviceRegistry) -> None:
        """Test devices are listed in insertion order, offline."""
        kitchen = registry.add("Kitchen", "10.0.0.1")
        lounge = registry.add("Lounge", "10.0.0.2")
        devices = registry.list()
        assert [d.id for d in devices] == [kitchen.id, lounge.id]
        assert all(not d.online for d in devices)

    def test_add_idempotent_on_address(self, registry: DeviceRegistry) -> None:
        """Test re-adding an address returns the existing record."""
        first = registry.add("Kitchen", "10.0.0.1")
        second = registry.add("Other name", " 10.0.0.1 ")
        assert second == first
        assert len(registry.list()) == 1

    def test_empty_address_rejected(self, registry: DeviceRegistry) -> None:
        """Test an address is required."""
        with pytest.raises(ValueError):
            registry.add("Nowhere", "  ")

    def test_name_defaults_to_address(self, registry: DeviceRegistry) -> None:
        """Test a blank name falls back to the address."""
        assert registry.add("", "10.0.0.3").name == "10.0.0.3"

    def test_delete(self, registry: DeviceRegistry) -> None:
        """Test deleting by id."""
        device = registry.add("Kitchen", "10.0.0.1")
        assert registry.delete(device.id) is True
        assert registry.delete(device.id) is False
        assert registry.list() == []

    def test_get(self, registry: DeviceRegistry) -> None:
        """Test lookup by id."""
        device = registry.add("Kitchen", "10.0.0.1")
        assert registry.get(device.id) == device
        assert registry.get("missing") is None

    def test_invalid_entries_skipped(
        self, registry: DeviceRegistry, config: ConfigManager
    ) -> None:
        """Test corrupted entries are ignored."""
        config.settings.setValue(
            "devices/list",
            [{"id": "ok", "name": "Fine", "address": "10.0.0.1"}, {"name": "broken"}, "junk"],
        )
        assert [d.id for d in registry.list()] == ["ok"]


class TestLibrary:
    """Tests for Library."""

    def test_tracks_round_trip(self, library: Library, tracks: list[Track]) -> None:
        """Test the catalogue is persisted."""
        library.set_tracks(tracks)
        assert library.list_tracks() == tracks
        assert library.get_track("b") == tracks[1]
        assert library.get_track("zz") is None

    def test_track_fields_preserved(self, library: Library) -> None:
        """Test optional track fields survive storage."""
        track = Track(
            id="f", title="File", artist="Me", art_url="http://x/a.png", duration=12.5, path="/m/f.mp3"
        )
        library.set_tracks([track])
        assert library.list_tracks() == [track]

    def test_save_and_get_playlist(self, library: Library) -> None:
        """Test saving a playlist and reading it back."""
        playlist = create_playlist("Evening", ["a", "b", "a"])
        library.save_playlist(playlist)
        assert library.get_playlist(playlist.id) == playlist
        assert library.playlists() == [playlist]

    def test_save_replaces_in_place(self, library: Library) -> None:
        """Test saving an existing id updates it without reordering."""
        first = Playlist(id="p1", name="One")
        second = Playlist(id="p2", name="Two")
        library.save_playlist(first)
        library.save_playlist(second)
        library.save_playlist(first.with_tracks(["c"]))
        assert [(p.id, p.track_ids) for p in library.playlists()] == [("p1", ("c",)), ("p2", ())]

    def test_delete_playlist(self, library: Library) -> None:
        """Test deleting a playlist."""
        library.save_playlist(Playlist(id="p1", name="One"))
        assert library.delete_playlist("p1") is True
        assert library.delete_playlist("p1") is False
        assert library.get_playlist("p1") is None
