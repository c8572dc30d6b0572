"""Unit tests for the git diff source and the Change model."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from commitlink.core.exceptions import DiffUnavailableError
from commitlink.pipeline.models import Change
from commitlink.vcs.git import GitDiffSource, parse_github_remote

TWO_FILE_DIFF = """diff --git a/src/app.py b/src/app.py
index 1111111..2222222 100644
--- a/src/app.py
+++ b/src/app.py
@@ -1 +1 @@
-print("hi")
+print("hello")
diff --git a/README.md b/README.md
index 3333333..4444444 100644
--- a/README.md
+++ b/README.md
@@ -1 +1,2 @@
 # app
+More docs.
"""


class TestChange:
    def test_components_split_by_path(self) -> None:
        change = Change.from_diff(TWO_FILE_DIFF)
        assert change.paths == ["src/app.py", "README.md"]
        assert change.components["src/app.py"].startswith("diff --git a/src/app.py")
        assert "More docs." in change.components["README.md"]
        assert "More docs." not in change.components["src/app.py"]

    def test_components_are_read_only(self) -> None:
        change = Change.from_diff(TWO_FILE_DIFF)
        with pytest.raises(TypeError):
            change.components["x"] = "y"  # type: ignore[index]

    @pytest.mark.parametrize("diff", ["", "   \n\t\n"])
    def test_blank_is_empty(self, diff: str) -> None:
        assert Change.from_diff(diff).is_empty

    def test_headerless_text_has_no_components(self) -> None:
        change = Change.from_diff("+bug fix")
        assert not change.is_empty
        assert change.paths == []


class TestParseGithubRemote:
    @pytest.mark.parametrize(
        "url",
        [
            "https://github.com/octo/app.git",
            "https://github.com/octo/app",
            "git@github.com:octo/app.git",
            "ssh://git@github.com/octo/app.git\n",
        ],
    )
    def test_github_urls(self, url: str) -> None:
        assert parse_github_remote(url) == "octo/app"

    def test_non_github(self) -> None:
        assert parse_github_remote("https://gitlab.com/octo/app.git") is None


class TestGitDiffSource:
    @pytest.mark.asyncio
    async def test_staged_preferred(self, tmp_path: Path) -> None:
        source = GitDiffSource()
        with patch.object(source, "_run", AsyncMock(return_value="staged diff")) as run:
            assert await source.get_change(tmp_path) == "staged diff"
        run.assert_awaited_once_with(tmp_path, "diff", "--cached")

    @pytest.mark.asyncio
    async def test_falls_back_to_working_tree(self, tmp_path: Path) -> None:
        source = GitDiffSource()
        with patch.object(source, "_run", AsyncMock(side_effect=["  \n", "unstaged diff"])) as run:
            assert await source.get_change(tmp_path) == "unstaged diff"
        assert run.await_args_list[1].args == (tmp_path, "diff")

    @pytest.mark.asyncio
    async def test_missing_git_binary(self, tmp_path: Path) -> None:
        source = GitDiffSource(git=str(tmp_path / "no-such-git"))
        with pytest.raises(DiffUnavailableError):
            await source.get_change(tmp_path)

    @pytest.mark.asyncio
    @pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
    async def test_not_a_repository(self, tmp_path: Path) -> None:
        with pytest.raises(DiffUnavailableError):
            await GitDiffSource().get_change(tmp_path)

    @pytest.mark.asyncio
    @pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
    async def test_real_repository(self, tmp_path: Path) -> None:
        def git(*args: str) -> None:
            subprocess.run(["git", *args], cwd=tmp_path, check=True, capture_output=True)

        git("init", "-q")
        git("config", "user.email", "dev@example.com")
        git("config", "user.name", "Dev")
        (tmp_path / "a.txt").write_text("one\n")
        git("add", "a.txt")
        git("commit", "-q", "-m", "init")

        source = GitDiffSource()
        assert (await source.get_change(tmp_path)).strip() == ""

        (tmp_path / "a.txt").write_text("two\n")
        unstaged = await source.get_change(tmp_path)
        assert "+two" in unstaged

        git("add", "a.txt")
        (tmp_path / "b.txt").write_text("untracked\n")
        staged = await source.get_change(tmp_path)
        assert "diff --git a/a.txt b/a.txt" in staged

        git("remote", "add", "origin", "git@github.com:octo/app.git")
        assert await source.remote_repository(tmp_path) == "octo/app"

    @pytest.mark.asyncio
    async def test_remote_repository_failure_is_none(self, tmp_path: Path) -> None:
        source = GitDiffSource()
        with patch.object(source, "_run", AsyncMock(side_effect=DiffUnavailableError("no"))):
            assert await source.remote_repository(tmp_path) is None
