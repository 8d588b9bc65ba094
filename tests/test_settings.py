from __future__ import annotations

import pytest
from pydantic import ValidationError


def test_commit_frames_follow_rate_profile(make_settings):
    assert make_settings().target_sample_rate == 16000
    assert make_settings().commit_frames == 20
    assert make_settings(target_sample_rate=24000).commit_frames == 25


def test_explicit_commit_frames_win(make_settings):
    assert make_settings(target_sample_rate=24000, commit_frames=10).commit_frames == 10


def test_invalid_values_are_rejected(make_settings):
    with pytest.raises(ValidationError):
        make_settings(target_sample_rate=44100)
    with pytest.raises(ValidationError):
        make_settings(commit_frames=0)
    with pytest.raises(ValidationError):
        make_settings(upstream_error_policy="sometimes")


def test_relay_settings_read_from_environment(make_settings, monkeypatch):
    monkeypatch.setenv("RELAY_TARGET_SAMPLE_RATE", "24000")
    monkeypatch.setenv("RELAY_UPSTREAM_ERROR_POLICY", "strict")
    monkeypatch.setenv("RELAY_OUTBOUND_QUEUE_MAX", "32")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = make_settings()

    assert settings.target_sample_rate == 24000
    assert settings.resample_ratio == 3
    assert settings.commit_frames == 25
    assert settings.upstream_error_policy == "strict"
    assert settings.outbound_queue_max == 32
    assert settings.log_level == "DEBUG"
