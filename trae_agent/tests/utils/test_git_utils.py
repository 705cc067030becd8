# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Tests for patch detection."""
import git
import pytest

from src.utils.git_utils import (
    EMPTY_TREE_SHA,
    PatchDetector,
    file_diff,
    get_git_diff,
    is_test_path,
    patch_chunks,
    patch_is_nonempty,
    remove_patches_to_tests,
)


@pytest.fixture
def repo(tmp_path):
    """A git repository with one commit."""
    project = tmp_path / "project"
    project.mkdir()
    repo = git.Repo.init(project)
    with repo.config_writer() as writer:
        writer.set_value("user", "name", "Test")
        writer.set_value("user", "email", "test@example.com")
    (project / "main.py").write_text("print('hello')\n")
    repo.index.add(["main.py"])
    repo.index.commit("initial")
    return repo


class TestFileDiff:

    def test_modified(self):
        diff = file_diff("a.py", "x = 1\n", "x = 2\n")
        assert diff.startswith("diff --git a/a.py b/a.py\n")
        assert "-x = 1\n" in diff
        assert "+x = 2\n" in diff

    def test_new_and_deleted(self):
        assert "new file mode" in file_diff("a.py", None, "x\n")
        assert "deleted file mode" in file_diff("a.py", "x\n", None)

    def test_unchanged(self):
        assert file_diff("a.py", "x\n", "x\n") == ""


class TestTestFiltering:

    @pytest.mark.parametrize(
        "path",
        ["tests/test_main.py", "pkg/tests/helpers.py", "test_utils.py", "utils_test.py", "conftest.py", "src/app.spec.ts"],
    )
    def test_test_paths(self, path):
        assert is_test_path(path)

    @pytest.mark.parametrize("path", ["main.py", "src/contest.py", "latest/app.py"])
    def test_source_paths(self, path):
        assert not is_test_path(path)

    def test_remove_patches_to_tests(self):
        patch = file_diff("main.py", "a\n", "b\n") + file_diff("tests/test_main.py", "a\n", "b\n")
        filtered = remove_patches_to_tests(patch)
        assert "main.py" in filtered
        assert "tests/test_main.py" not in filtered

    def test_patch_to_tests_only_is_empty(self):
        assert not patch_is_nonempty(file_diff("tests/test_main.py", "a\n", "b\n"))
        assert not patch_is_nonempty("")
        assert patch_is_nonempty(file_diff("main.py", "a\n", "b\n"))


class TestGitDiff:

    def test_clean_tree(self, repo):
        assert get_git_diff(repo.working_tree_dir) == ""

    def test_modified_and_untracked(self, repo):
        project = repo.working_tree_dir
        with open(f"{project}/main.py", "w") as f:
            f.write("print('bye')\n")
        with open(f"{project}/new.py", "w") as f:
            f.write("x = 1\n")
        diff = get_git_diff(project)
        assert "+print('bye')" in diff
        assert "diff --git a/new.py b/new.py" in diff
        assert "+x = 1" in diff

    def test_committed_changes_count_against_base_commit(self, repo):
        base = repo.head.commit.hexsha
        project = repo.working_tree_dir
        with open(f"{project}/main.py", "w") as f:
            f.write("print('committed')\n")
        repo.index.add(["main.py"])
        repo.index.commit("agent work")
        assert get_git_diff(project) == ""
        assert "+print('committed')" in get_git_diff(project, base)

    def test_not_a_repository(self, tmp_path):
        with pytest.raises(ValueError):
            get_git_diff(tmp_path)


class TestPatchDetector:

    def test_git_mode(self, repo):
        detector = PatchDetector(repo.working_tree_dir)
        detector.start()
        assert detector.mode == "git"
        assert not detector.has_patch()
        with open(f"{repo.working_tree_dir}/main.py", "a") as f:
            f.write("print('more')\n")
        assert detector.has_patch()

    def test_changes_from_before_the_run_are_not_a_patch(self, repo):
        root = repo.working_tree_dir
        with open(f"{root}/notes.txt", "w") as f:
            f.write("scratch notes\n")
        with open(f"{root}/main.py", "a") as f:
            f.write("print('local edit')\n")

        detector = PatchDetector(root)
        detector.start()
        assert detector.current_patch() == ""
        assert not detector.has_patch()

        with open(f"{root}/main.py", "a") as f:
            f.write("print('agent edit')\n")
        patch = detector.current_patch()
        assert "+print('agent edit')" in patch
        assert "notes.txt" not in patch
        assert detector.has_patch()

    def test_work_committed_during_the_run_counts(self, repo):
        root = repo.working_tree_dir
        initial = repo.head.commit.hexsha
        detector = PatchDetector(root)
        detector.start()
        assert detector.base_sha == initial

        with open(f"{root}/main.py", "w") as f:
            f.write("print('fixed')\n")
        repo.index.add(["main.py"])
        repo.index.commit("agent fix")

        assert get_git_diff(root) == ""
        assert "+print('fixed')" in detector.current_patch()
        assert detector.has_patch()

    def test_committing_a_file_that_was_already_untracked(self, repo):
        root = repo.working_tree_dir
        with open(f"{root}/notes.txt", "w") as f:
            f.write("scratch notes\n")
        detector = PatchDetector(root)
        detector.start()

        repo.index.add(["notes.txt"])
        repo.index.commit("keep notes")
        assert not detector.has_patch()

    def test_repository_without_commits(self, tmp_path):
        repo = git.Repo.init(tmp_path / "fresh")
        (tmp_path / "fresh" / "old.py").write_text("x = 1\n")
        detector = PatchDetector(repo.working_tree_dir)
        detector.start()
        assert detector.base_sha == EMPTY_TREE_SHA
        assert not detector.has_patch()

        (tmp_path / "fresh" / "new.py").write_text("y = 2\n")
        assert [path for path, _ in patch_chunks(detector.current_patch())] == ["new.py"]

    def test_snapshot_mode(self, tmp_path):
        (tmp_path / "app.py").write_text("x = 1\n")
        detector = PatchDetector(tmp_path)
        detector.start()
        assert detector.mode == "snapshot"
        assert not detector.has_patch()

        (tmp_path / "app.py").write_text("x = 2\n")
        (tmp_path / "added.txt").write_text("new\n")
        patch = detector.current_patch()
        assert "+x = 2" in patch
        assert "diff --git a/added.txt b/added.txt" in patch
        assert detector.has_patch()

    def test_changes_to_tests_only_are_not_a_patch(self, tmp_path):
        detector = PatchDetector(tmp_path)
        detector.start()
        (tmp_path / "tests").mkdir()
        (tmp_path / "tests" / "test_app.py").write_text("def test(): pass\n")
        assert detector.current_patch() != ""
        assert not detector.has_patch()

    def test_bad_base_commit_is_no_patch(self, repo):
        detector = PatchDetector(repo.working_tree_dir, base_commit="0" * 40)
        detector.start()
        assert not detector.has_patch()
