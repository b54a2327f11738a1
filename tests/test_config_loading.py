"""Settings loading, environment overrides and validation."""

from __future__ import annotations

from pathlib import Path

import pytest

from resume_sync.config import (
    RateLimitSettings,
    Settings,
    Severity,
    apply_env_overrides,
    has_errors,
    load_raw_config,
    load_settings,
    settings_from_mapping,
    validate_settings,
)
from resume_sync.errors import AuthenticationRequired, ConfigError
from resume_sync.observability import redact_for_log, redact_text
from resume_sync.web.auth import LOCAL_DEV_USER, Authenticator


def test_checked_in_defaults_load() -> None:
    settings = load_settings("config/config.yaml", env={})
    assert settings.provider == "stub"
    assert settings.auth_mode == "off"
    assert settings.rate_limits["ai"] == RateLimitSettings(limit=10, window_seconds=60.0)
    assert settings.rate_limits["streaming"] == RateLimitSettings(limit=5, window_seconds=60.0)
    assert settings.tailor_max_wait_seconds == 480.0
    assert settings.structuring_max_wait_seconds == 120.0
    assert not has_errors(validate_settings(settings))


def test_local_overlay_is_deep_merged(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "config.yaml").write_text(
        "provider: stub\nrate_limits:\n  ai:\n    limit: 10\n    window_seconds: 60\n  fetch:\n    limit: 20\n    window_seconds: 60\n",
        encoding="utf-8",
    )
    (config_dir / "config.local.yaml").write_text(
        "provider: openai\nrate_limits:\n  ai:\n    limit: 3\n",
        encoding="utf-8",
    )
    monkeypatch.chdir(tmp_path)

    raw = load_raw_config("config/config.local.yaml")

    assert raw["provider"] == "openai"
    assert raw["rate_limits"]["ai"] == {"limit": 3, "window_seconds": 60}
    assert raw["rate_limits"]["fetch"]["limit"] == 20


def test_explicit_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_raw_config(str(tmp_path / "nope.yaml"))


def test_non_mapping_yaml_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "list.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_raw_config(str(path))


def test_settings_from_mapping_coerces_types() -> None:
    settings = settings_from_mapping(
        {
            "provider": "gemini",
            "poll_interval_seconds": "0.5",
            "max_upload_bytes": "1024",
            "api_tokens": {"tok": "user-1"},
            "retry": {"max_attempts": 5},
            "rate_limits": {"ai": {"limit": "4", "window_seconds": "30"}},
        }
    )
    assert settings.provider == "gemini"
    assert settings.poll_interval_seconds == 0.5
    assert settings.max_upload_bytes == 1024
    assert settings.api_tokens == {"tok": "user-1"}
    assert settings.retry.max_attempts == 5
    assert settings.retry.base_delay_seconds == 1.0
    assert settings.rate_limits["ai"] == RateLimitSettings(limit=4, window_seconds=30.0)
    assert settings.rate_limits["fetch"].limit == 20


def test_env_overrides() -> None:
    settings = apply_env_overrides(
        Settings(),
        {
            "RESUME_SYNC_PROVIDER": "OpenAI",
            "RESUME_SYNC_STORE": "sqlite",
            "RESUME_SYNC_DB_PATH": "/data/profiles.db",
            "RESUME_SYNC_API_TOKENS": "tok-a=user-a, tok-b=user-b,broken",
            "RESUME_SYNC_MAX_UPLOAD_BYTES": "2048",
            "RESUME_SYNC_STRUCTURING_MAX_WAIT_SECONDS": "30",
            "RESUME_SYNC_TAILOR_MAX_WAIT_SECONDS": "600",
            "RESUME_SYNC_RATE_LIMIT_AI": "3/10",
            "RESUME_SYNC_RATE_LIMIT_BAD": "oops",
        },
    )
    assert settings.provider == "openai"
    assert settings.store == "sqlite"
    assert settings.db_path == "/data/profiles.db"
    assert settings.api_tokens == {"tok-a": "user-a", "tok-b": "user-b"}
    assert settings.max_upload_bytes == 2048
    assert settings.structuring_max_wait_seconds == 30.0
    assert settings.tailor_max_wait_seconds == 600.0
    assert settings.rate_limits["ai"] == RateLimitSettings(limit=3, window_seconds=10.0)
    assert "bad" not in settings.rate_limits


def test_validation_reports_each_problem() -> None:
    settings = Settings(provider="mystery", store="redis", auth_mode="token", poll_interval_seconds=0, max_upload_bytes=0)
    settings.rate_limits["ai"] = RateLimitSettings(limit=0, window_seconds=60)

    issues = validate_settings(settings)
    fields = {issue.field for issue in issues if issue.severity == Severity.ERROR}

    assert fields == {"provider", "store", "api_tokens", "poll_interval_seconds", "rate_limits.ai", "max_upload_bytes"}
    assert has_errors(issues)


def test_stub_provider_is_only_a_warning() -> None:
    issues = validate_settings(Settings())
    assert [(issue.field, issue.severity) for issue in issues] == [("provider", Severity.WARNING)]
    assert not has_errors(issues)


def test_authenticator_modes() -> None:
    off = Authenticator("off")
    assert off.resolve({}) == LOCAL_DEV_USER
    assert off.resolve({"x-user-id": " user-9 "}) == "user-9"

    token = Authenticator("token", {"tok-1": "user-1"})
    assert token.resolve({"authorization": "Bearer tok-1"}) == "user-1"
    with pytest.raises(AuthenticationRequired):
        token.resolve({"authorization": "Basic abc"})
    with pytest.raises(AuthenticationRequired):
        token.resolve({"authorization": "Bearer tok-2"})
    with pytest.raises(ConfigError):
        Authenticator("token").resolve({"authorization": "Bearer tok-1"})


def test_redaction_of_user_content() -> None:
    text = "Reach me at alex@example.com or +1 (512) 555-0100, key sk-abcdef123456"
    redacted = redact_text(text)
    assert "alex@example.com" not in redacted
    assert "555-0100" not in redacted
    assert "sk-abcdef123456" not in redacted
    assert redact_text("x" * 500).endswith("...")
    assert redact_for_log({"emails": ["a@b.io"], "count": 2}) == {"emails": ["[REDACTED_EMAIL]"], "count": 2}
