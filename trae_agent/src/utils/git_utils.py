# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Detecting the patch an agent produced.

In a git work tree the patch is the diff against the base commit (or the HEAD
of when the run started), plus any new untracked files. Files that were
already dirty when the run started only count once they change again.
Outside git, the project's text files are snapshotted when the run starts and
diffed at check time.
"""
import os
import re
import difflib
import logging

import git

from pathlib import Path

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

# Files larger than this are left out of snapshots and new-file diffs
MAX_FILE_BYTES = 1_000_000

SKIPPED_DIRS = {".git", ".hg", ".svn", "__pycache__", "node_modules", ".venv", "venv", ".mypy_cache", ".pytest_cache", ".tox"}

TEST_DIRS = {"test", "tests", "testing", "e2e"}
TEST_FILES = {"conftest.py", "tox.ini", "pytest.ini"}

_DIFF_HEADER = re.compile(r"^diff --git a/(?P<a>\S+) b/(?P<b>\S+)", re.MULTILINE)

# The well-known id of the empty tree, the base of a repository with no commits
EMPTY_TREE_SHA = "4b825dc642cb6eb9a060e54bf8d69288fbee4904"


def _read_text(path: Path) -> str | None:
    try:
        if path.stat().st_size > MAX_FILE_BYTES:
            return None
        return path.read_text()
    except (OSError, UnicodeDecodeError):
        return None


def file_diff(rel_path: str, old: str | None, new: str | None) -> str:
    """A git-style unified diff for one file. None stands for absent."""
    old_lines = (old or "").splitlines(keepends=True)
    new_lines = (new or "").splitlines(keepends=True)
    lines = [f"diff --git a/{rel_path} b/{rel_path}\n"]
    if old is None:
        lines.append("new file mode 100644\n")
    elif new is None:
        lines.append("deleted file mode 100644\n")
    body = list(
        difflib.unified_diff(
            old_lines,
            new_lines,
            fromfile="/dev/null" if old is None else f"a/{rel_path}",
            tofile="/dev/null" if new is None else f"b/{rel_path}",
        )
    )
    if not body and old is not None and new is not None:
        return ""
    for line in body:
        lines.append(line if line.endswith("\n") else line + "\n\\ No newline at end of file\n")
    return "".join(lines)


def open_repo(project_path: str | Path) -> git.Repo | None:
    try:
        return git.Repo(project_path, search_parent_directories=True)
    except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError):
        return None


def get_git_diff(project_path: str | Path, base_commit: str | None = None) -> str:
    """The working tree's changes under `project_path`.

    Diffs against `base_commit` when given (so committed work counts too),
    otherwise against HEAD, or the index on a repository with no commits.
    Untracked, non-ignored text files are included as new files.

    Raises:
        ValueError: `project_path` is not inside a git work tree
        git.exc.GitCommandError: `base_commit` does not exist
    """
    repo = open_repo(project_path)
    if repo is None or repo.working_tree_dir is None:
        raise ValueError(f"{project_path} is not inside a git work tree")

    root = Path(repo.working_tree_dir)
    rel = os.path.relpath(Path(project_path).resolve(), root.resolve())
    scope = ["--", rel] if rel != "." else []

    if base_commit:
        diff = repo.git.diff(base_commit, *scope)
    elif repo.head.is_valid():
        diff = repo.git.diff("HEAD", *scope)
    else:
        diff = repo.git.diff(*scope)

    parts = [diff + "\n"] if diff else []
    for untracked in sorted(repo.untracked_files):
        if rel != "." and not untracked.startswith(rel.rstrip("/") + "/"):
            continue
        content = _read_text(root / untracked)
        if content is None:
            continue
        parts.append(file_diff(untracked, None, content))
    return "".join(parts)


def is_test_path(path: str) -> bool:
    parts = Path(path).parts
    if any(p in TEST_DIRS for p in parts[:-1]):
        return True
    name = parts[-1] if parts else ""
    return (
        name in TEST_FILES
        or name.startswith("test_")
        or name.endswith("_test.py")
        or ".test." in name
        or ".spec." in name
    )


def patch_chunks(patch: str) -> list[tuple[str, str]]:
    """Split a patch into (path, chunk) pairs, one per file."""
    starts = [m.start() for m in _DIFF_HEADER.finditer(patch)]
    chunks = []
    for start, end in zip(starts, starts[1:] + [len(patch)]):
        chunk = patch[start:end]
        chunks.append((_DIFF_HEADER.match(chunk).group("b"), chunk))
    return chunks


def _without_index_lines(chunk: str) -> str:
    return "".join(line for line in chunk.splitlines(keepends=True) if not line.startswith("index "))


def remove_patches_to_tests(patch: str) -> str:
    """Drop the per-file chunks of a patch that touch test files."""
    starts = [m.start() for m in _DIFF_HEADER.finditer(patch)]
    if not starts:
        return patch
    kept = [patch[: starts[0]]]
    for start, end in zip(starts, starts[1:] + [len(patch)]):
        chunk = patch[start:end]
        match = _DIFF_HEADER.match(chunk)
        if match and (is_test_path(match.group("a")) or is_test_path(match.group("b"))):
            continue
        kept.append(chunk)
    return "".join(kept)


def patch_is_nonempty(patch: str) -> bool:
    return bool(remove_patches_to_tests(patch).strip())


class PatchDetector:
    """Finds the changes made to a project since the session started.

    Use `start()` before the agent runs. It records the baseline: in git
    mode the resolved base commit plus whatever was already dirty, in
    snapshot mode the project's files. `current_patch()` can then be called
    at any time and only reports what changed after the baseline.
    """

    def __init__(self, project_path: str | Path, base_commit: str | None = None):
        self.project_path = Path(project_path)
        self.base_commit = base_commit
        self.use_git = open_repo(self.project_path) is not None
        self._snapshot: dict[str, str] = {}
        self._base_sha: str | None = None
        self._dirty_at_start: dict[str, str] = {}

    @property
    def mode(self) -> str:
        return "git" if self.use_git else "snapshot"

    @property
    def base_sha(self) -> str | None:
        return self._base_sha

    def start(self) -> None:
        if not self.use_git:
            self._snapshot = self._take_snapshot()
            logger.debug(f"Snapshotted {len(self._snapshot)} files under {self.project_path}")
            return

        try:
            self._base_sha = self._resolve_base()
            self._dirty_at_start = {
                path: _without_index_lines(chunk)
                for path, chunk in patch_chunks(get_git_diff(self.project_path, self._base_sha))
            }
        except git.exc.GitCommandError as e:
            logger.error(f"Could not resolve base commit {self.base_commit}: {e}")
            self._base_sha = None
            self._dirty_at_start = {}
            return
        logger.debug(
            f"Patch base for {self.project_path} is {self._base_sha}, "
            f"{len(self._dirty_at_start)} files already changed"
        )

    def _resolve_base(self) -> str:
        repo = open_repo(self.project_path)
        if self.base_commit:
            return repo.git.rev_parse("--verify", f"{self.base_commit}^{{commit}}")
        if repo.head.is_valid():
            return repo.head.commit.hexsha
        return EMPTY_TREE_SHA

    def _take_snapshot(self) -> dict[str, str]:
        snapshot: dict[str, str] = {}
        if not self.project_path.is_dir():
            return snapshot
        for dirpath, dirnames, filenames in os.walk(self.project_path):
            dirnames[:] = sorted(d for d in dirnames if d not in SKIPPED_DIRS)
            for filename in filenames:
                path = Path(dirpath) / filename
                content = _read_text(path)
                if content is not None:
                    snapshot[path.relative_to(self.project_path).as_posix()] = content
        return snapshot

    def current_patch(self) -> str:
        if self.use_git:
            patch = get_git_diff(self.project_path, self._base_sha or self.base_commit)
            return "".join(
                chunk for path, chunk in patch_chunks(patch)
                if self._dirty_at_start.get(path) != _without_index_lines(chunk)
            )

        current = self._take_snapshot()
        parts = []
        for rel in sorted(set(self._snapshot) | set(current)):
            old, new = self._snapshot.get(rel), current.get(rel)
            if old != new:
                parts.append(file_diff(rel, old, new))
        return "".join(parts)

    def has_patch(self) -> bool:
        """Whether a non-empty, non-test patch exists."""
        try:
            return patch_is_nonempty(self.current_patch())
        except git.exc.GitCommandError as e:
            logger.error(f"Could not compute the git diff: {e}")
            return False
