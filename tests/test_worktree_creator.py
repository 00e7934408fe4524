"""Tests for worktree creation"""

import logging
import re
from pathlib import Path
from unittest.mock import Mock

import pytest

from worktree_keeper.config import WorkspaceConfig
from worktree_keeper.exceptions import ExecutionError, ValidationError
from worktree_keeper.services.command_executor import GitExecutor
from worktree_keeper.services.git.worktrees import WorktreeRegistry
from worktree_keeper.services.worktree_creator import CreatedWorktree, WorktreeCreator, _timestamp


def creator_for(repo, config=None) -> WorktreeCreator:
    return WorktreeCreator(config or WorkspaceConfig(), GitExecutor(cwd=repo.working_dir))


@pytest.fixture
def offline_creator(temp_dir):
    """Creator whose git executor is a mock; main repository at temp/app."""
    main = temp_dir / "app"
    main.mkdir()
    executor = Mock(spec=GitExecutor)
    registry = Mock(spec=WorktreeRegistry)
    registry.main_repo_path.return_value = str(main)
    return WorktreeCreator(WorkspaceConfig(), executor, registry)


class TestFeatureNameValidation:
    """Test feature name rules."""

    @pytest.mark.parametrize(
        "name",
        ["", "a" * 51, "login fix", "feat;rm", "feat$(x)", "feat/login", "-rf", "main", "master", "HEAD", ".", ".."],
    )
    def test_rejected_before_any_git_call(self, offline_creator, name):
        with pytest.raises(ValidationError):
            offline_creator.create(name)

        offline_creator.git.run.assert_not_called()
        offline_creator.registry.main_repo_path.assert_not_called()

    @pytest.mark.parametrize("name", ["login-fix", "v1.2", "JIRA_123", "a" * 50])
    def test_accepted(self, offline_creator, name):
        offline_creator.validate_feature_name(name)

    def test_configured_forbidden_names(self, offline_creator):
        offline_creator.config = WorkspaceConfig.from_dict({"validation": {"forbiddenNames": ["prod"]}})

        with pytest.raises(ValidationError, match="reserved"):
            offline_creator.validate_feature_name("prod")
        # Built-in names stay forbidden when the configured list replaces the default one
        with pytest.raises(ValidationError, match="reserved"):
            offline_creator.validate_feature_name("main")

    def test_configured_pattern_narrows(self, offline_creator):
        offline_creator.config = WorkspaceConfig.from_dict(
            {"validation": {"allowedFeatureNameChars": "^[a-z-]+$"}}
        )

        offline_creator.validate_feature_name("login-fix")
        with pytest.raises(ValidationError):
            offline_creator.validate_feature_name("Login_Fix")

    def test_configured_pattern_cannot_widen(self, offline_creator):
        offline_creator.config = WorkspaceConfig.from_dict({"validation": {"allowedFeatureNameChars": "^.+$"}})

        with pytest.raises(ValidationError):
            offline_creator.validate_feature_name("login fix")

    @pytest.mark.parametrize("ref", ["origin/main;x", "-x", "main..dev space"])
    def test_bad_ref(self, offline_creator, ref):
        with pytest.raises(ValidationError):
            offline_creator.create("login-fix", ref)

        offline_creator.git.run.assert_not_called()


class TestResolvePath:
    """Test destination path computation."""

    def test_default_pattern_is_sibling(self, offline_creator, temp_dir):
        path = offline_creator.resolve_path("login-fix", str(temp_dir / "app"))
        assert path == str(temp_dir / "app-login-fix")

    def test_nested_pattern_inside_repository(self, offline_creator, temp_dir):
        offline_creator.config = WorkspaceConfig.from_dict(
            {"worktreePathPattern": ".worktrees/${featureName}",
             "validation": {"allowParentDirectoryTraversal": False}}
        )

        path = offline_creator.resolve_path("login-fix", str(temp_dir / "app"))

        assert path == str(temp_dir / "app" / ".worktrees" / "login-fix")

    def test_traversal_disabled(self, offline_creator, temp_dir):
        offline_creator.config = WorkspaceConfig.from_dict({"validation": {"allowParentDirectoryTraversal": False}})

        with pytest.raises(ValidationError, match="traversal is disabled"):
            offline_creator.resolve_path("login-fix", str(temp_dir / "app"))

    def test_too_deep(self, offline_creator, temp_dir):
        offline_creator.config = WorkspaceConfig.from_dict(
            {"worktreePathPattern": "../worktrees/${gitRoot}/${featureName}"}
        )

        with pytest.raises(ValidationError, match="exceeds the maximum of 3"):
            offline_creator.resolve_path("login-fix", str(temp_dir / "app"))

    def test_depth_limit_from_config(self, offline_creator, temp_dir):
        offline_creator.config = WorkspaceConfig.from_dict(
            {"worktreePathPattern": "../worktrees/${gitRoot}/${featureName}",
             "validation": {"maxPathDepth": 4}}
        )

        path = offline_creator.resolve_path("login-fix", str(temp_dir / "app"))

        assert path == str(temp_dir / "worktrees" / "app" / "login-fix")

    def test_absolute_pattern_with_parent_dir(self, offline_creator, temp_dir):
        offline_creator.config = WorkspaceConfig.from_dict(
            {"worktreePathPattern": "${parentDir}/trees/${gitRoot}/wip/${featureName}"}
        )

        path = offline_creator.resolve_path("login-fix", str(temp_dir / "app"))

        assert path == str(temp_dir / "trees" / "app" / "wip" / "login-fix")

    @pytest.mark.parametrize("pattern", ["~/${featureName}", "-${featureName}"])
    def test_unsafe_leading_character(self, offline_creator, temp_dir, pattern):
        offline_creator.config = WorkspaceConfig.from_dict({"worktreePathPattern": pattern})

        with pytest.raises(ValidationError, match="must not start with"):
            offline_creator.resolve_path("login-fix", str(temp_dir / "app"))

    def test_unknown_placeholder(self, offline_creator, temp_dir):
        offline_creator.config = WorkspaceConfig.from_dict({"worktreePathPattern": "../${repo}-${featureName}"})

        with pytest.raises(ValidationError, match="unknown placeholder"):
            offline_creator.resolve_path("login-fix", str(temp_dir / "app"))

    def test_existing_destination(self, offline_creator, temp_dir):
        (temp_dir / "app-login-fix").mkdir()

        with pytest.raises(ValidationError, match="already exists"):
            offline_creator.resolve_path("login-fix", str(temp_dir / "app"))

    def test_timestamp_format(self):
        assert re.match(r"^\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d{3}Z$", _timestamp())


class TestCreate:
    """Test worktree creation against a real repository."""

    def test_creates_sibling_worktree_on_new_branch(self, git_repo, temp_dir):
        created = creator_for(git_repo).create("login-fix")

        assert created.path == str(temp_dir / "app-login-fix")
        assert created.branch == "login-fix"
        assert (temp_dir / "app-login-fix" / "README.md").exists()
        assert "login-fix" in git_repo.git.branch("--list", "login-fix")

        worktrees = WorktreeRegistry(GitExecutor(cwd=git_repo.working_dir)).list()
        assert [wt.branch for wt in worktrees] == [None, "login-fix"]

    def test_cd_command(self, git_repo, temp_dir):
        created = creator_for(git_repo).create("login-fix")
        assert created.cd_command == f"cd '{temp_dir / 'app-login-fix'}'"

    def test_cd_command_quotes_path(self):
        created = CreatedWorktree(path="/src/it's here", branch="x")
        assert created.cd_command == "cd '/src/it'\\''s here'"

    def test_from_base_ref(self, git_repo, temp_dir):
        git_repo.git.checkout("-b", "release")
        (Path(git_repo.working_dir) / "release.txt").write_text("release\n")
        git_repo.index.add(["release.txt"])
        release_commit = git_repo.index.commit("Release work").hexsha
        git_repo.git.checkout("main")

        created = creator_for(git_repo).create("hotfix", "release")

        assert created.ref == "release"
        assert (temp_dir / "app-hotfix" / "release.txt").exists()
        assert git_repo.git.rev_parse("hotfix") == release_commit

    def test_from_linked_worktree_uses_main_repository(self, repo_with_worktrees, temp_dir):
        worktree_path = temp_dir / "app-feature-a"
        creator = WorktreeCreator(WorkspaceConfig(), GitExecutor(cwd=str(worktree_path)))

        created = creator.create("login-fix")

        assert created.path == str(temp_dir / "app-login-fix")

    def test_env_file_is_copied(self, git_repo, temp_dir):
        (Path(git_repo.working_dir) / ".env").write_text("SECRET=1\n")

        created = creator_for(git_repo).create("login-fix")

        assert created.env_copied
        assert (temp_dir / "app-login-fix" / ".env").read_text() == "SECRET=1\n"

    def test_without_env_file(self, git_repo, temp_dir):
        created = creator_for(git_repo).create("login-fix")

        assert not created.env_copied
        assert not (temp_dir / "app-login-fix" / ".env").exists()

    def test_existing_branch_fails(self, git_repo, temp_dir):
        git_repo.git.branch("taken")

        with pytest.raises(ExecutionError):
            creator_for(git_repo).create("taken")

        assert not (temp_dir / "app-taken").exists()

    def test_fetch_failure_is_a_warning(self, offline_creator, temp_dir, caplog):
        def run(subcommand, args=(), cwd=None, timeout=None):
            if subcommand == "fetch":
                raise ExecutionError("git", "fetch", "Could not resolve host", returncode=128)
            return ""

        offline_creator.git.run.side_effect = run

        with caplog.at_level(logging.WARNING):
            created = offline_creator.create("login-fix", "origin/main")

        assert created.ref == "origin/main"
        assert "git fetch failed" in caplog.text
        add_call = offline_creator.git.run.call_args_list[-1]
        assert add_call.args == ("worktree", ["add", str(temp_dir / "app-login-fix"), "-b", "login-fix", "origin/main"])
        assert add_call.kwargs["cwd"] == str(temp_dir / "app")
