# syncroom/core/errors.py

from __future__ import annotations


class SyncRoomError(Exception):
    """Base class for every error raised by the room/chat engine."""


# ============================================================================
# ROOM CREATION
# ============================================================================

class RoomReferenceError(SyncRoomError, ValueError):
    """The media reference of a room request can't be used."""


class InvalidReference(RoomReferenceError):
    """A video URL was supplied but no known URL shape matched it."""


class MissingReference(RoomReferenceError):
    """Neither a video URL, an audio URL nor an explicit audio kind was supplied."""


# ============================================================================
# EVENT STREAM
# ============================================================================

class TransientPersistenceFault(SyncRoomError):
    """A chat message could not be stored. Logged, never fatal."""


class EventParseError(SyncRoomError):
    """
    A WebSocket frame that doesn't describe a known, well-formed event.

    Attributes:
        raw: The offending frame, kept for logging
    """

    def __init__(self, message: str, raw: str | None = None) -> None:
        super().__init__(message)
        self.raw = raw


# ============================================================================
# MEDIA RESOLVER
# ============================================================================

class ResolverError(SyncRoomError):
    """The upstream media API answered with an error."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ResolverNotConfigured(ResolverError):
    """No client id is configured for the media API."""
