"""Core sync engine.

This module contains the engine that keeps device playback state in sync and
dispatches user commands.

Classes:
    PlaybackStateStore: Per-device playback state with Qt signals.
    NotificationStream: Reconnecting long-poll event loop.
    QueueController: Local queue and play-mode advance rules.
    Controller: Device selection and command surface.
    EngineWorker: QThread hosting the asyncio loop.
    ConfigManager: QSettings wrapper for configuration.
"""

from beoctrl.core.config import ConfigManager, EngineSettings
from beoctrl.core.controller import CommandWarning, Controller
from beoctrl.core.queue import STOP, QueueController, advance, resolve_queue
from beoctrl.core.state import PlaybackStateStore
from beoctrl.core.stream import CancellationToken, NotificationStream, StreamState
from beoctrl.core.updates import Authoritative, Optimistic, Reset
from beoctrl.core.worker import EngineWorker

__all__ = [
    "STOP",
    "Authoritative",
    "CancellationToken",
    "CommandWarning",
    "ConfigManager",
    "Controller",
    "EngineSettings",
    "EngineWorker",
    "NotificationStream",
    "Optimistic",
    "PlaybackStateStore",
    "QueueController",
    "Reset",
    "StreamState",
    "advance",
    "resolve_queue",
]
