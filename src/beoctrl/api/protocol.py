"""Wire format for device notifications and status payloads.

Notifications arrive as JSON envelopes of the form ``{"type": str, "data": {...}}``.
This module decodes envelopes and maps them to PlaybackState field updates.
The same field rules are used for the direct status fetch on device selection.
"""

import json
import logging
import math
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, cast

from beoctrl.api.errors import MalformedEventError
from beoctrl.models.playback import DEFAULT_VOLUME, PlaybackState, PlayMode, PlayState
from beoctrl.models.source import LOCAL_SOURCE_ID, Source
from beoctrl.models.track import DEFAULT_ART_URL, Track

logger = logging.getLogger(__name__)


class EventType(StrEnum):
    """Notification types the engine understands."""

    VOLUME = "VOLUME"
    PROGRESS_INFORMATION = "PROGRESS_INFORMATION"
    SOURCE = "SOURCE"
    PLAY_STATE = "PLAY_STATE"


@dataclass(frozen=True)
class NotificationEnvelope:
    """A single decoded notification.

    Attributes:
        type: Event type string as sent by the device.
        data: Event payload.
    """

    type: str
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def event_type(self) -> EventType | None:
        """Return the known EventType, or None for unknown types."""
        try:
            return EventType(self.type)
        except ValueError:
            return None

    @classmethod
    def from_dict(cls, payload: object) -> "NotificationEnvelope":
        """Create an envelope from a decoded JSON value.

        Raises:
            MalformedEventError: If the payload is not a {type, data} object.
        """
        if not isinstance(payload, dict):
            raise MalformedEventError(f"Envelope is not an object: {type(payload).__name__}")
        raw = cast(dict[str, Any], payload)
        event_type = raw.get("type")
        if not isinstance(event_type, str) or not event_type:
            raise MalformedEventError("Envelope has no event type")
        data = raw.get("data", {})
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise MalformedEventError(f"Envelope data for {event_type} is not an object")
        return cls(type=event_type, data=cast(dict[str, Any], data))

    @classmethod
    def from_json(cls, text: str | bytes) -> "NotificationEnvelope":
        """Decode an envelope from a response body.

        Raises:
            MalformedEventError: If the body is not valid JSON or not an envelope.
        """
        try:
            payload = json.loads(text)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise MalformedEventError(f"Invalid notification JSON: {e}") from e
        return cls.from_dict(payload)


def _get(data: Mapping[str, Any] | None, *path: str) -> Any:
    """Walk nested dicts, returning None as soon as a key is missing."""
    current: Any = data
    for key in path:
        if not isinstance(current, Mapping):
            return None
        current = cast(Mapping[str, Any], current).get(key)
    return current


def _number(value: Any) -> float | None:
    """Return value as a finite number, or None (bools are not numbers here)."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    if not math.isfinite(value):
        return None
    return value


def parse_track(raw: Any, fallback_id: str = "") -> Track | None:
    """Build a Track from a device track payload.

    A track is only built when the payload carries a non-empty title.

    Args:
        raw: The ``track`` object from a notification or stream status.
        fallback_id: ID to use when the payload has none.

    Returns:
        Track, or None if there is no usable title.
    """
    if not isinstance(raw, Mapping):
        return None
    track = cast(Mapping[str, Any], raw)
    title = track.get("title")
    if not isinstance(title, str) or not title:
        return None

    track_id = track.get("id")
    if track_id is None or track_id == "":
        track_id = fallback_id or uuid.uuid4().hex
    artist = track.get("artist")
    art_url = _get(track, "art", "url")
    duration = _number(track.get("duration"))

    return Track(
        id=str(track_id),
        title=title,
        artist=str(artist) if artist else "Unknown Artist",
        art_url=str(art_url) if art_url else DEFAULT_ART_URL,
        duration=duration if duration is not None else 0,
    )


def event_to_fields(
    envelope: NotificationEnvelope,
    current_track: Track | None = None,
) -> dict[str, Any]:
    """Map a notification to the PlaybackState fields it updates.

    Missing or invalid fields inside a known event are skipped, never nulled.
    Unknown event types map to no updates.

    Args:
        envelope: The decoded notification.
        current_track: The currently known track, used for ID continuity.

    Returns:
        Dict of PlaybackState field name to new value.
    """
    data = envelope.data
    updates: dict[str, Any] = {}

    match envelope.event_type:
        case EventType.VOLUME:
            level = _number(_get(data, "speaker", "level"))
            if level is not None:
                updates["volume"] = int(level)

        case EventType.PROGRESS_INFORMATION:
            progress = _number(data.get("progress"))
            if progress is not None:
                updates["progress"] = progress
            state = PlayState.from_string(data.get("state"))
            if state is not None:
                updates["play_state"] = state
            fallback_id = current_track.id if current_track else ""
            track = parse_track(data.get("track"), fallback_id=fallback_id)
            if track is not None:
                updates["current_track"] = track

        case EventType.SOURCE:
            source_id = _get(data, "primarySource", "id")
            if source_id:
                updates["active_source_id"] = str(source_id)

        case EventType.PLAY_STATE:
            state = PlayState.from_string(data.get("state"))
            if state is not None:
                updates["play_state"] = state
            shuffle = _get(data, "playQueue", "shuffle")
            if isinstance(shuffle, bool):
                updates["play_mode"] = PlayMode.from_shuffle(shuffle)

        case None:
            logger.debug("Ignoring unknown notification type %s", envelope.type)

    return updates


def parse_stream_status(
    stream: Mapping[str, Any] | None,
    volume: Mapping[str, Any] | None,
) -> PlaybackState:
    """Build a PlaybackState from the stream and volume status endpoints.

    Args:
        stream: Body of the zone stream endpoint (may be empty).
        volume: Body of the volume settings endpoint (may be empty).

    Returns:
        PlaybackState with defaults for anything missing.
    """
    stream = stream or {}
    state = PlayState.from_string(stream.get("state")) or PlayState.STOPPED
    progress = _number(stream.get("progress"))
    level = _number(_get(volume, "speaker", "level"))
    source_id = _get(stream, "source", "id")
    shuffle = _get(stream, "playMode", "shuffle")

    return PlaybackState(
        play_state=state,
        progress=progress if progress is not None else 0,
        volume=int(level) if level is not None else DEFAULT_VOLUME,
        active_source_id=str(source_id) if source_id else LOCAL_SOURCE_ID,
        play_mode=PlayMode.from_shuffle(bool(shuffle)),
        current_track=parse_track(stream.get("track")),
    )


def parse_sources(data: Mapping[str, Any] | None) -> list[Source]:
    """Parse the sources endpoint body into Source models.

    The device reports ``sources`` either as an object keyed by id, as a
    list of objects, or as a list of ``[id, object]`` pairs.

    Args:
        data: Body of the sources endpoint.

    Returns:
        List of sources, empty if none could be parsed.
    """
    raw = _get(data, "sources")
    if isinstance(raw, Mapping):
        entries = list(cast(Mapping[str, Any], raw).items())
    elif isinstance(raw, list):
        entries = []
        for item in cast(list[Any], raw):
            if isinstance(item, list | tuple) and len(item) == 2:  # noqa: PLR2004
                entries.append((str(item[0]), item[1]))
            else:
                entries.append(("", item))
    else:
        return []

    sources: list[Source] = []
    for key, value in entries:
        if not isinstance(value, Mapping):
            continue
        entry = cast(Mapping[str, Any], value)
        source_id = entry.get("id") or key
        if not source_id:
            continue
        sources.append(
            Source(
                id=str(source_id),
                name=str(entry.get("friendlyName") or entry.get("name") or ""),
                kind=str(entry.get("type") or ""),
            )
        )
    return sources
