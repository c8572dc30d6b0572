"""commitlink constants: filesystem layout, endpoints, defaults, and limits."""

from __future__ import annotations

import os
import sys
from enum import IntEnum
from pathlib import Path

# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------


class ExitCode(IntEnum):
    SUCCESS = 0
    ERROR = 1
    CONFIG_ERROR = 2
    ENV_ERROR = 3
    NETWORK_ERROR = 4
    PERMISSION_ERROR = 5
    CANCELLED = 130


# ---------------------------------------------------------------------------
# Platform-specific config directory
# ---------------------------------------------------------------------------


def _default_data_dir() -> Path:
    """
    Return the platform-appropriate commitlink config directory.

    macOS : ~/Library/Application Support/commitlink
    Linux : ~/.config/commitlink  (or $XDG_CONFIG_HOME/commitlink)
    Other : ~/.commitlink
    """
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "commitlink"
    if sys.platform.startswith("linux"):
        xdg = Path(os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config")))
        return xdg / "commitlink"
    return Path.home() / ".commitlink"


CONFIG_FILENAME = "config.toml"

# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------

DEFAULT_PROVIDER = "gemini"
DEFAULT_GEMINI_MODEL = "gemini-2.0-flash"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_ANTHROPIC_MODEL = "claude-sonnet-4-20250514"
DEFAULT_MAX_TOKENS = 512
DEFAULT_TEMPERATURE = 0.3
DEFAULT_PROVIDER_TIMEOUT_SECONDS = 60.0

# Error bodies quoted back to the user are cut to this many characters
ERROR_BODY_MAX_CHARS = 200

# ---------------------------------------------------------------------------
# Issue tracker
# ---------------------------------------------------------------------------

GITHUB_API_URL = "https://api.github.com"
GITHUB_ACCEPT = "application/vnd.github+json"
GITHUB_API_VERSION = "2022-11-28"
GITHUB_SCOPES = ("repo", "read:user")
GITHUB_PAGE_SIZE = 100
GITHUB_MAX_PAGES = 10
GITHUB_TIMEOUT_SECONDS = 30.0

SUPPORTED_TRACKERS = ("github", "none")

# Matcher prompt budget per candidate issue body
ISSUE_BODY_EXCERPT_CHARS = 150
DEFAULT_MAX_CANDIDATES = 50
NO_MATCH_TOKEN = "NONE"

DEFAULT_REFERENCE_KEYWORD = "Refs"
DEFAULT_MIN_CREATE_CONFIDENCE = 0.5

# Diff text beyond this is cut before it goes into any prompt
MAX_DIFF_PROMPT_CHARS = 60_000
