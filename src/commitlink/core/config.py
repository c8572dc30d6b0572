"""commitlink configuration: Pydantic model, load, save, and keyring placeholders."""

from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, Field, SecretStr, field_validator

from commitlink.core.constants import (
    CONFIG_FILENAME,
    DEFAULT_ANTHROPIC_MODEL,
    DEFAULT_GEMINI_MODEL,
    DEFAULT_MAX_CANDIDATES,
    DEFAULT_MAX_TOKENS,
    DEFAULT_MIN_CREATE_CONFIDENCE,
    DEFAULT_OPENAI_MODEL,
    DEFAULT_PROVIDER,
    DEFAULT_PROVIDER_TIMEOUT_SECONDS,
    DEFAULT_REFERENCE_KEYWORD,
    DEFAULT_TEMPERATURE,
    SUPPORTED_TRACKERS,
    _default_data_dir,
)
from commitlink.core.exceptions import ConfigNotFoundError, ConfigurationError

logger = structlog.get_logger()


def commitlink_dir() -> Path:
    """Return the commitlink config directory, creating it if needed."""
    d = _default_data_dir()
    d.mkdir(mode=0o700, parents=True, exist_ok=True)
    return d


# ---------------------------------------------------------------------------
# Sub-models
# ---------------------------------------------------------------------------


class ProviderConfig(BaseModel):
    """Text-generation backend selection.

    ``name`` is not validated against the registry here: an unknown
    selector is reported by the gateway when it is used.
    """

    name: str = DEFAULT_PROVIDER
    api_key: SecretStr | None = None
    gemini_model: str = DEFAULT_GEMINI_MODEL
    openai_model: str = DEFAULT_OPENAI_MODEL
    anthropic_model: str = DEFAULT_ANTHROPIC_MODEL
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float = DEFAULT_TEMPERATURE
    timeout_seconds: float = DEFAULT_PROVIDER_TIMEOUT_SECONDS

    @field_validator("name")
    @classmethod
    def normalise_name(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("max_tokens")
    @classmethod
    def validate_max_tokens(cls, v: int) -> int:
        if not (1 <= v <= 128000):
            raise ValueError("max_tokens must be between 1 and 128000")
        return v

    @field_validator("temperature")
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        if not (0.0 <= v <= 2.0):
            raise ValueError("temperature must be between 0.0 and 2.0")
        return v

    def model_for(self, provider: str) -> str:
        """Return the configured model for *provider* (empty if none is known)."""
        return {
            "gemini": self.gemini_model,
            "openai": self.openai_model,
            "anthropic": self.anthropic_model,
        }.get(provider, "")

    def api_key_value(self) -> str:
        if self.api_key is None:
            return ""
        return self.api_key.get_secret_value().strip()


class IssueTrackerConfig(BaseModel):
    """Issue tracker integration."""

    tracker: str = "github"
    repository: str = ""  # owner/repo; empty → derived from the origin remote
    token: SecretStr | None = None
    auto_create_issues: bool = False
    include_issue_in_commit: bool = True
    assign_to_self: bool = True
    default_labels: list[str] = Field(default_factory=list)
    min_create_confidence: float = DEFAULT_MIN_CREATE_CONFIDENCE
    max_candidates: int = DEFAULT_MAX_CANDIDATES
    reference_keyword: str = DEFAULT_REFERENCE_KEYWORD

    @field_validator("tracker")
    @classmethod
    def validate_tracker(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in SUPPORTED_TRACKERS:
            raise ValueError(
                f"Unknown issue tracker {v!r}. Supported: {', '.join(SUPPORTED_TRACKERS)}"
            )
        return v

    @field_validator("repository")
    @classmethod
    def validate_repository(cls, v: str) -> str:
        v = v.strip()
        if v and (v.count("/") != 1 or not all(v.split("/"))):
            raise ValueError(f"repository must look like 'owner/repo', got {v!r}")
        return v

    @field_validator("default_labels", mode="before")
    @classmethod
    def parse_labels(cls, v: Any) -> Any:
        """Accept both list and comma-separated string."""
        if isinstance(v, str):
            return [label.strip() for label in v.split(",") if label.strip()]
        return v

    @field_validator("min_create_confidence")
    @classmethod
    def validate_confidence(cls, v: float) -> float:
        if not (0.0 <= v <= 1.0):
            raise ValueError("min_create_confidence must be between 0.0 and 1.0")
        return v

    @field_validator("max_candidates")
    @classmethod
    def validate_max_candidates(cls, v: int) -> int:
        if not (1 <= v <= 500):
            raise ValueError("max_candidates must be between 1 and 500")
        return v

    @property
    def enabled(self) -> bool:
        return self.tracker != "none"

    @property
    def linking_enabled(self) -> bool:
        return self.enabled and self.include_issue_in_commit

    def token_value(self) -> str:
        if self.token is None:
            return ""
        return self.token.get_secret_value().strip()


class LoggingConfig(BaseModel):
    level: str = "WARNING"
    format: str = "text"  # "text" | "json"

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {allowed}")
        return v.upper()

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        if v not in ("text", "json"):
            raise ValueError("Log format must be 'text' or 'json'")
        return v


# ---------------------------------------------------------------------------
# Root config
# ---------------------------------------------------------------------------


class CommitLinkConfig(BaseModel):
    """Root commitlink configuration model."""

    config_version: int = 1
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    issues: IssueTrackerConfig = Field(default_factory=IssueTrackerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    _config_path: Path | None = None

    @property
    def config_path(self) -> Path | None:
        return self._config_path


# ---------------------------------------------------------------------------
# Load / save
# ---------------------------------------------------------------------------


def _config_file_path() -> Path:
    if env_path := os.environ.get("COMMITLINK_CONFIG"):
        return Path(env_path)
    return _default_data_dir() / CONFIG_FILENAME


def load_config(path: Path | str | None = None) -> CommitLinkConfig:
    """
    Load CommitLinkConfig from TOML, overlaid with environment variables.

    Priority (highest to lowest):
      1. Environment variables (COMMITLINK_*, GITHUB_TOKEN)
      2. Config file
      3. Model defaults

    A missing default config file is not an error (environment-only setups
    are supported); a missing *explicit* path raises ConfigNotFoundError.
    """
    import tomllib

    explicit = path is not None or bool(os.environ.get("COMMITLINK_CONFIG"))
    cfg_path = Path(path) if path is not None else _config_file_path()

    data: dict[str, Any] = {}
    if cfg_path.exists():
        try:
            with open(cfg_path, "rb") as f:
                data = tomllib.load(f)
        except Exception as exc:
            raise ConfigurationError(f"Cannot read config file {cfg_path}: {exc}") from exc
    elif explicit:
        raise ConfigNotFoundError(
            f"Config file not found: {cfg_path}\nRun 'commitlink config init' to create one."
        )

    for section in ("provider", "issues", "logging"):
        if section in data and not isinstance(data[section], dict):
            raise ConfigurationError(
                f"Invalid config at {cfg_path}: [{section}] must be a table, "
                f"got {type(data[section]).__name__}"
            )

    _resolve_keyring_placeholders(data)
    _apply_env_overrides(data)

    try:
        config = CommitLinkConfig.model_validate(data)
    except Exception as exc:
        raise ConfigurationError(f"Invalid config at {cfg_path}: {exc}") from exc

    config._config_path = cfg_path if cfg_path.exists() else None
    return config


def _parse_bool(value: str) -> bool:
    v = value.strip().lower()
    if v in ("1", "true", "yes", "on"):
        return True
    if v in ("0", "false", "no", "off"):
        return False
    raise ConfigurationError(f"Expected a boolean value, got {value!r}")


def _apply_env_overrides(data: dict[str, Any]) -> None:
    """Overlay COMMITLINK_* environment variables onto parsed TOML."""

    def _env(*names: str) -> str:
        for name in names:
            v = os.environ.get(name, "")
            if v:
                return v
        return ""

    provider = data.setdefault("provider", {})
    if name := _env("COMMITLINK_PROVIDER"):
        provider["name"] = name
    if key := _env("COMMITLINK_API_KEY"):
        provider["api_key"] = key
    if model := _env("COMMITLINK_MODEL"):
        selected = str(provider.get("name", DEFAULT_PROVIDER)).strip().lower()
        provider[f"{selected}_model"] = model

    issues = data.setdefault("issues", {})
    if tracker := _env("COMMITLINK_ISSUE_TRACKER"):
        issues["tracker"] = tracker
    if repository := _env("COMMITLINK_REPOSITORY"):
        issues["repository"] = repository
    # GITHUB_TOKEN is what CI runners export
    if token := _env("COMMITLINK_GITHUB_TOKEN", "GITHUB_TOKEN"):
        issues["token"] = token
    if auto_create := _env("COMMITLINK_AUTO_CREATE_ISSUES"):
        issues["auto_create_issues"] = _parse_bool(auto_create)
    if include := _env("COMMITLINK_INCLUDE_ISSUE"):
        issues["include_issue_in_commit"] = _parse_bool(include)

    if level := _env("COMMITLINK_LOG_LEVEL"):
        data.setdefault("logging", {})["level"] = level


def save_config(
    config_data: dict[str, Any],
    path: Path | None = None,
    *,
    use_keyring: bool = False,
) -> Path:
    """Write config dict to TOML with secure permissions (0600)."""
    import tomli_w

    cfg_path = path or _config_file_path()
    cfg_path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    write_data = copy.deepcopy(config_data)
    write_data.setdefault("config_version", 1)
    if use_keyring:
        _store_tokens_in_keyring(write_data)

    tmp_path = cfg_path.with_suffix(".tmp")
    try:
        with open(tmp_path, "wb") as f:
            tomli_w.dump(write_data, f)
        tmp_path.replace(cfg_path)
    except Exception as exc:
        tmp_path.unlink(missing_ok=True)
        raise ConfigurationError(f"Cannot write config to {cfg_path}: {exc}") from exc

    cfg_path.chmod(0o600)
    logger.info("config_saved", path=str(cfg_path), keyring=use_keyring)
    return cfg_path


# ---------------------------------------------------------------------------
# Keyring helpers
# ---------------------------------------------------------------------------

# (section, key) pairs that may hold a keyring placeholder
_KEYRING_TOKEN_FIELDS: list[tuple[str, str]] = [
    ("provider", "api_key"),
    ("issues", "token"),
]


def _resolve_keyring_placeholders(data: dict[str, Any]) -> None:
    """In-place resolve ``keyring:*`` placeholders to the stored secrets."""
    from commitlink.core.keyring_store import is_keyring_placeholder, retrieve_token

    for section, key in _KEYRING_TOKEN_FIELDS:
        val = data.get(section, {}).get(key)
        if not is_keyring_placeholder(val):
            continue
        resolved = retrieve_token(val)
        if resolved is None:
            raise ConfigurationError(
                f"Cannot resolve keyring secret for [{section}].{key}. "
                f"Placeholder: {val!r}. Is the keyring unlocked?"
            )
        data[section][key] = resolved


def _store_tokens_in_keyring(data: dict[str, Any]) -> None:
    """Replace raw secrets with keyring placeholders (in-place)."""
    from commitlink.core.keyring_store import (
        is_keyring_available,
        is_keyring_placeholder,
        store_token,
    )

    if not is_keyring_available():
        raise ConfigurationError("No usable OS keyring backend is available.")

    for section, key in _KEYRING_TOKEN_FIELDS:
        token = data.get(section, {}).get(key)
        if isinstance(token, str) and token and not is_keyring_placeholder(token):
            data[section][key] = store_token(f"{section}_{key}", token)


def redacted_dump(config: CommitLinkConfig) -> dict[str, Any]:
    """Return the config as plain data with secrets masked."""
    data = config.model_dump(mode="json")
    for section, key in _KEYRING_TOKEN_FIELDS:
        if data.get(section, {}).get(key):
            data[section][key] = "********"
    return data
