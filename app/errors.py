"""Failure taxonomy for the playback engine."""

from __future__ import annotations


class PlaybackError(Exception):
    """Base class for failures raised inside the playback engine."""

    user_message = "Playback is unavailable."


class MetadataUnavailable(PlaybackError):
    """Title details, search results or a season listing could not be fetched."""

    user_message = "Could not fetch details for this title"


class NoCandidateSource(PlaybackError):
    """No configured provider supports the requested media kind."""

    user_message = "No video sources available."


class SourceUnreachable(PlaybackError):
    """A single provider failed its probe or its player load."""

    def __init__(self, source: str, reason: str = "unavailable") -> None:
        super().__init__(f"{source} is {reason}")
        self.source = source
        self.reason = reason


class PersistedStateCorrupt(PlaybackError):
    """A stored list could not be decoded."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Stored value for {key!r} is corrupt: {reason}")
        self.key = key
        self.reason = reason
