"""Settings loading: YAML defaults, local overlay, then RESUME_SYNC_* env overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

DEFAULT_CONFIG_PATH = "config/config.local.yaml"
ENV_PREFIX = "RESUME_SYNC_"

DEFAULT_ALLOWED_UPLOAD_MIME_TYPES = (
    "application/pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
    "text/markdown",
)

KNOWN_PROVIDERS = ("stub", "openai", "gemini", "subconscious")
KNOWN_STORES = ("memory", "sqlite")
KNOWN_AUTH_MODES = ("off", "token")


@dataclass
class RateLimitSettings:
    limit: int
    window_seconds: float


@dataclass
class RetrySettings:
    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0


def _default_rate_limits() -> Dict[str, RateLimitSettings]:
    # ai: parsing/merging, streaming: long-running tailoring, fetch: external scraping
    return {
        "ai": RateLimitSettings(limit=10, window_seconds=60.0),
        "streaming": RateLimitSettings(limit=5, window_seconds=60.0),
        "fetch": RateLimitSettings(limit=20, window_seconds=60.0),
    }


@dataclass
class Settings:
    provider: str = "stub"
    engine: str = "tim-large"
    api_key: str = ""
    api_base: str = ""
    store: str = "memory"
    db_path: str = "workspace/resume_sync.db"
    auth_mode: str = "off"
    api_tokens: Dict[str, str] = field(default_factory=dict)
    max_upload_bytes: int = 5 * 1024 * 1024
    allowed_upload_mime_types: List[str] = field(default_factory=lambda: list(DEFAULT_ALLOWED_UPLOAD_MIME_TYPES))
    poll_interval_seconds: float = 2.0
    structuring_max_wait_seconds: float = 120.0
    merge_max_wait_seconds: float = 60.0
    job_parse_max_wait_seconds: float = 120.0
    tailor_max_wait_seconds: float = 480.0
    task_wait_timeout_seconds: float = 300.0
    rate_limits: Dict[str, RateLimitSettings] = field(default_factory=_default_rate_limits)
    rate_limit_sweep_interval_seconds: float = 300.0
    retry: RetrySettings = field(default_factory=RetrySettings)
    verbose: bool = False


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass
class ConfigIssue:
    """A single configuration issue."""
    field: str
    message: str
    severity: Severity


def load_raw_config(config_path: str = DEFAULT_CONFIG_PATH) -> dict:
    """Load raw configuration dictionary from YAML files.

    Priority order:
    1. config.local.yaml (local overrides with secrets)
    2. config.yaml (checked-in defaults)

    Missing default files yield an empty mapping so the server can boot on
    environment variables alone. An explicit non-default path must exist.
    """
    import yaml

    repo_root = Path(__file__).resolve().parents[1]

    def _resolve(candidate: str) -> Path:
        path = Path(candidate)
        if path.exists():
            return path
        alt = repo_root / candidate
        if alt.exists():
            return alt
        return path

    def _load_yaml(path: Path) -> dict:
        if not path.exists():
            return {}
        with open(path) as f:
            data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ValueError(f"Config file must be a mapping: {path}")
            return data

    target = _resolve(config_path)
    if Path(config_path).name == "config.local.yaml":
        base = _load_yaml(_resolve("config/config.yaml"))
        return _deep_merge(base, _load_yaml(target))

    if not target.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")
    return _load_yaml(target)


def _deep_merge(base: dict, override: dict) -> dict:
    merged = dict(base)
    for key, value in override.items():
        base_value = merged.get(key)
        if isinstance(base_value, dict) and isinstance(value, dict):
            merged[key] = _deep_merge(base_value, value)
        else:
            merged[key] = value
    return merged


def settings_from_mapping(data: Mapping[str, Any]) -> Settings:
    """Build Settings from a raw (YAML-shaped) mapping."""
    settings = Settings()
    for key in (
        "provider",
        "engine",
        "api_key",
        "api_base",
        "store",
        "db_path",
        "auth_mode",
    ):
        if key in data and data[key] is not None:
            setattr(settings, key, str(data[key]))

    for key in (
        "poll_interval_seconds",
        "structuring_max_wait_seconds",
        "merge_max_wait_seconds",
        "job_parse_max_wait_seconds",
        "tailor_max_wait_seconds",
        "task_wait_timeout_seconds",
        "rate_limit_sweep_interval_seconds",
    ):
        if key in data and data[key] is not None:
            setattr(settings, key, float(data[key]))

    if data.get("max_upload_bytes") is not None:
        settings.max_upload_bytes = int(data["max_upload_bytes"])
    if data.get("allowed_upload_mime_types"):
        settings.allowed_upload_mime_types = [str(item) for item in data["allowed_upload_mime_types"]]
    if isinstance(data.get("api_tokens"), dict):
        settings.api_tokens = {str(k): str(v) for k, v in data["api_tokens"].items()}
    settings.verbose = bool(data.get("verbose", settings.verbose))

    for name, raw in (data.get("rate_limits") or {}).items():
        if isinstance(raw, dict):
            settings.rate_limits[str(name)] = RateLimitSettings(
                limit=int(raw.get("limit", 10)),
                window_seconds=float(raw.get("window_seconds", 60.0)),
            )

    retry = data.get("retry") or {}
    if isinstance(retry, dict):
        settings.retry = RetrySettings(
            max_attempts=int(retry.get("max_attempts", settings.retry.max_attempts)),
            base_delay_seconds=float(retry.get("base_delay_seconds", settings.retry.base_delay_seconds)),
            max_delay_seconds=float(retry.get("max_delay_seconds", settings.retry.max_delay_seconds)),
        )
    return settings


def apply_env_overrides(settings: Settings, env: Optional[Mapping[str, str]] = None) -> Settings:
    """Overlay RESUME_SYNC_* environment variables onto settings."""
    env = os.environ if env is None else env

    def _get(name: str) -> str:
        return (env.get(f"{ENV_PREFIX}{name}") or "").strip()

    for name in ("PROVIDER", "ENGINE", "API_KEY", "API_BASE", "STORE", "DB_PATH", "AUTH_MODE"):
        value = _get(name)
        if value:
            setattr(settings, name.lower(), value.lower() if name in ("PROVIDER", "STORE", "AUTH_MODE") else value)

    for name in (
        "POLL_INTERVAL_SECONDS",
        "STRUCTURING_MAX_WAIT_SECONDS",
        "MERGE_MAX_WAIT_SECONDS",
        "JOB_PARSE_MAX_WAIT_SECONDS",
        "TAILOR_MAX_WAIT_SECONDS",
        "TASK_WAIT_TIMEOUT_SECONDS",
    ):
        value = _get(name)
        if value:
            setattr(settings, name.lower(), float(value))

    if _get("MAX_UPLOAD_BYTES"):
        settings.max_upload_bytes = int(_get("MAX_UPLOAD_BYTES"))

    # "token-a=user-1,token-b=user-2"
    if _get("API_TOKENS"):
        tokens: Dict[str, str] = {}
        for item in _get("API_TOKENS").split(","):
            raw = item.strip()
            if "=" not in raw:
                continue
            token, user_id = raw.split("=", 1)
            if token.strip() and user_id.strip():
                tokens[token.strip()] = user_id.strip()
        settings.api_tokens = tokens

    # RESUME_SYNC_RATE_LIMIT_AI="10/60"
    for key, value in env.items():
        if not key.startswith(f"{ENV_PREFIX}RATE_LIMIT_") or "/" not in value:
            continue
        name = key[len(f"{ENV_PREFIX}RATE_LIMIT_"):].lower()
        limit, window = value.split("/", 1)
        settings.rate_limits[name] = RateLimitSettings(limit=int(limit), window_seconds=float(window))

    return settings


def load_settings(config_path: str = DEFAULT_CONFIG_PATH, env: Optional[Mapping[str, str]] = None) -> Settings:
    """Load settings from YAML then environment."""
    return apply_env_overrides(settings_from_mapping(load_raw_config(config_path)), env)


def validate_settings(settings: Settings) -> List[ConfigIssue]:
    """Validate settings and return a list of issues (empty = valid)."""
    issues: List[ConfigIssue] = []

    if settings.provider not in KNOWN_PROVIDERS:
        issues.append(ConfigIssue(
            field="provider",
            message=f"provider must be one of {', '.join(KNOWN_PROVIDERS)}, got {settings.provider!r}",
            severity=Severity.ERROR,
        ))
    elif settings.provider == "stub":
        issues.append(ConfigIssue(
            field="provider",
            message="stub provider is active; structuring will fall back to raw text",
            severity=Severity.WARNING,
        ))

    if settings.store not in KNOWN_STORES:
        issues.append(ConfigIssue(
            field="store",
            message=f"store must be one of {', '.join(KNOWN_STORES)}, got {settings.store!r}",
            severity=Severity.ERROR,
        ))

    if settings.auth_mode not in KNOWN_AUTH_MODES:
        issues.append(ConfigIssue(
            field="auth_mode",
            message=f"auth_mode must be one of {', '.join(KNOWN_AUTH_MODES)}, got {settings.auth_mode!r}",
            severity=Severity.ERROR,
        ))
    elif settings.auth_mode == "token" and not settings.api_tokens:
        issues.append(ConfigIssue(
            field="api_tokens",
            message="auth_mode is 'token' but no api_tokens are configured",
            severity=Severity.ERROR,
        ))

    if settings.poll_interval_seconds <= 0:
        issues.append(ConfigIssue(
            field="poll_interval_seconds",
            message=f"poll_interval_seconds must be positive, got {settings.poll_interval_seconds}",
            severity=Severity.ERROR,
        ))
    if settings.structuring_max_wait_seconds < settings.poll_interval_seconds:
        issues.append(ConfigIssue(
            field="structuring_max_wait_seconds",
            message="structuring_max_wait_seconds is shorter than one poll interval",
            severity=Severity.WARNING,
        ))

    for name, limit in settings.rate_limits.items():
        if limit.limit <= 0 or limit.window_seconds <= 0:
            issues.append(ConfigIssue(
                field=f"rate_limits.{name}",
                message=f"limit and window_seconds must be positive, got {limit.limit}/{limit.window_seconds}",
                severity=Severity.ERROR,
            ))

    if settings.max_upload_bytes <= 0:
        issues.append(ConfigIssue(
            field="max_upload_bytes",
            message=f"max_upload_bytes must be a positive integer, got {settings.max_upload_bytes}",
            severity=Severity.ERROR,
        ))

    return issues


def has_errors(issues: List[ConfigIssue]) -> bool:
    return any(issue.severity == Severity.ERROR for issue in issues)
