"""Configuration settings behaviour tests."""

from __future__ import annotations

import pytest

from app.config import Settings


def test_defaults_point_at_local_check_endpoint() -> None:
    """Without an explicit probe URL the server checks embeds itself."""

    settings = Settings(_env_file=None, PORT=4100)

    assert settings.check_video_url == "http://127.0.0.1:4100/api/check-video"
    assert settings.preferred_source == "VidSrc.to"
    assert settings.continue_watching_limit == 20
    assert settings.watchlist_limit == 100


def test_explicit_probe_url_wins() -> None:
    settings = Settings(_env_file=None, PROBE_API_URL="https://probe.example.com/check")

    assert settings.check_video_url == "https://probe.example.com/check"


def test_blank_preferred_source_falls_back_to_default() -> None:
    """Blank provider names should fall back to the built-in default."""

    settings = Settings(_env_file=None, PREFERRED_SOURCE="   ")

    assert settings.preferred_source == "VidSrc.to"


def test_preferred_source_is_trimmed() -> None:
    settings = Settings(_env_file=None, PREFERRED_SOURCE=" 2Embed ")

    assert settings.preferred_source == "2Embed"


@pytest.mark.parametrize(
    "overrides",
    [
        {"CONTINUE_WATCHING_LIMIT": 0},
        {"WATCHLIST_LIMIT": 5000},
        {"PROBE_TIMEOUT": 0},
    ],
)
def test_out_of_range_values_raise(overrides: dict[str, object]) -> None:
    """Limits outside their bounds should raise a validation error."""

    with pytest.raises(ValueError):
        Settings(_env_file=None, **overrides)  # type: ignore[arg-type]


def test_session_bounds_have_defaults() -> None:
    settings = Settings(_env_file=None, MAX_SESSIONS=12, SESSION_IDLE_TIMEOUT=90)

    assert settings.max_sessions == 12
    assert settings.session_idle_seconds == 90.0
    assert Settings(_env_file=None).max_sessions == 256
