"""
commitlink — LLM-written commit messages linked to the issue they resolve.

commitlink reads the pending change in a git working tree, asks a
text-generation backend (Gemini, OpenAI, Anthropic) which open GitHub issue
the change addresses, optionally files a new issue when none does, and
writes a commit message that references at most one issue.

Package layout (src/commitlink/):
  core/       — config, logging, exceptions, cancellation, keyring
  providers/  — text-generation backends behind one gateway
  tracker/    — GitHub issue client and credential resolution
  pipeline/   — classifier, relevance matcher, orchestrator
  vcs/        — git diff source
  cli/        — Click CLI entry point
"""

__version__ = "0.4.0"
__all__ = ["__version__"]
