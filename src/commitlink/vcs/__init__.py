"""Version-control collaborators (diff retrieval, remote detection)."""

from commitlink.vcs.git import DiffSource, GitDiffSource, parse_github_remote  # noqa: F401
