"""Issue tracker integration — GitHub REST client and credential resolution."""

from commitlink.tracker.credentials import (  # noqa: F401
    CredentialResolver,
    GhCliSessionProvider,
    SessionProvider,
)
from commitlink.tracker.github import GitHubIssueClient  # noqa: F401
from commitlink.tracker.models import Issue, IssueState  # noqa: F401
