"""Tests for the command-line entry point"""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from worktree_keeper.cli.args import cleanup_options, parse_args
from worktree_keeper.cli.main import main
from worktree_keeper.models.cleanup import CleanupMode, CleanupOptions

from conftest import FakeRuntime


def flat(text: str) -> str:
    """Collapse console wrapping."""
    return " ".join(text.split())


@pytest.fixture(autouse=True)
def isolated_environment(temp_dir, monkeypatch):
    """Keep user config and logging handlers out of the way."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(temp_dir / "xdg"))
    for name in ("WORKTREE_KEEPER_PATH_PATTERN", "WORKTREE_KEEPER_CONFIRM_BY_DEFAULT",
                 "WORKTREE_KEEPER_VERBOSE", "WORKTREE_KEEPER_RUNTIME"):
        monkeypatch.delenv(name, raising=False)
    with patch("worktree_keeper.cli.main.setup_logging"):
        yield


@pytest.fixture
def no_docker():
    with patch("worktree_keeper.cli.main.RuntimeExecutor", side_effect=lambda **kwargs: FakeRuntime()) as mock_cls:
        yield mock_cls


class TestArgumentParsing:
    """Test argparse wiring."""

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            parse_args(["--version"])

        assert exc_info.value.code == 0
        assert capsys.readouterr().out.startswith("worktree-keeper ")

    def test_command_required(self):
        with pytest.raises(SystemExit) as exc_info:
            parse_args([])
        assert exc_info.value.code == 2

    def test_cleanup_options_mapping(self):
        args = parse_args(["cleanup", "--merged", "--dry-run", "--force-dirty"])

        options = CleanupOptions.from_dict(cleanup_options(args))

        assert options.mode(args.name) == CleanupMode.MERGED
        assert options.dry_run and options.force_dirty and not options.force

    def test_create_arguments(self):
        args = parse_args(["create", "login-fix", "origin/main"])
        assert (args.command, args.feature, args.ref) == ("create", "login-fix", "origin/main")


class TestCreateCommand:
    """Test `worktree-keeper create`."""

    def test_stdout_is_only_the_cd_line(self, git_repo, temp_dir, monkeypatch, capsys):
        monkeypatch.chdir(git_repo.working_dir)

        assert main(["create", "login-fix"]) == 0

        captured = capsys.readouterr()
        assert captured.out == f"cd '{temp_dir / 'app-login-fix'}'\n"
        assert "Created worktree" in flat(captured.err)
        assert (temp_dir / "app-login-fix").is_dir()

    def test_invalid_name(self, git_repo, temp_dir, monkeypatch, capsys):
        monkeypatch.chdir(git_repo.working_dir)

        assert main(["create", "login;fix"]) == 1

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "Error: Invalid feature name" in flat(captured.err)

    def test_project_config_is_used(self, git_repo, temp_dir, monkeypatch, capsys):
        monkeypatch.chdir(git_repo.working_dir)
        (Path(git_repo.working_dir) / ".worktree-keeper.json").write_text(
            json.dumps({"worktreePathPattern": "../trees/${featureName}"})
        )

        assert main(["create", "login-fix"]) == 0

        assert capsys.readouterr().out == f"cd '{temp_dir / 'trees' / 'login-fix'}'\n"


class TestCleanupCommand:
    """Test `worktree-keeper cleanup`."""

    def test_refused_inside_worktree(self, repo_with_worktrees, temp_dir, monkeypatch, capsys, no_docker):
        monkeypatch.chdir(temp_dir / "app-feature-a")

        assert main(["cleanup", "--all", "--force"]) == 1

        err = flat(capsys.readouterr().err)
        assert f"cd {repo_with_worktrees.working_dir}" in err
        assert (temp_dir / "app-feature-a").exists()
        assert (temp_dir / "app-feature-b").exists()

    def test_all_forced(self, repo_with_worktrees, temp_dir, monkeypatch, capsys, no_docker):
        monkeypatch.chdir(repo_with_worktrees.working_dir)

        assert main(["cleanup", "--all", "--force"]) == 0

        assert not (temp_dir / "app-feature-a").exists()
        assert not (temp_dir / "app-feature-b").exists()
        assert "Cleaned: 2" in capsys.readouterr().out
        assert no_docker.call_args.kwargs["binary"] == "docker"

    def test_list(self, repo_with_worktrees, monkeypatch, capsys, no_docker):
        monkeypatch.chdir(repo_with_worktrees.working_dir)

        assert main(["cleanup", "--list"]) == 0

        out = capsys.readouterr().out
        assert "app-feature-a" in out and "app-feature-b" in out

    def test_missing_mode(self, repo_with_worktrees, monkeypatch, capsys, no_docker):
        monkeypatch.chdir(repo_with_worktrees.working_dir)

        assert main(["cleanup"]) == 1

        assert "cleanup mode" in flat(capsys.readouterr().err)

    def test_unknown_worktree(self, repo_with_worktrees, monkeypatch, capsys, no_docker):
        monkeypatch.chdir(repo_with_worktrees.working_dir)

        assert main(["cleanup", "app-nope", "--force"]) == 1

        assert "app-nope" in flat(capsys.readouterr().err)

    def test_ctrl_c(self, repo_with_worktrees, monkeypatch, capsys):
        monkeypatch.chdir(repo_with_worktrees.working_dir)

        with patch("worktree_keeper.cli.main.run_cleanup", side_effect=KeyboardInterrupt):
            assert main(["cleanup", "--all"]) == 1

        assert "Operation cancelled by user" in capsys.readouterr().err

    def test_runtime_from_environment(self, repo_with_worktrees, monkeypatch, no_docker):
        monkeypatch.chdir(repo_with_worktrees.working_dir)
        monkeypatch.setenv("WORKTREE_KEEPER_RUNTIME", "podman")

        main(["cleanup", "--list"])

        assert no_docker.call_args.kwargs["binary"] == "podman"


class TestConfigCommand:
    """Test `worktree-keeper config init`."""

    def test_init_in_current_directory(self, temp_dir, monkeypatch, capsys):
        monkeypatch.chdir(temp_dir)

        assert main(["config", "init"]) == 0

        data = json.loads((temp_dir / ".worktree-keeper.json").read_text())
        assert data["worktreePathPattern"] == "../${gitRoot}-${featureName}"
        assert "Wrote sample configuration" in flat(capsys.readouterr().out)

    def test_init_custom_path(self, temp_dir, monkeypatch):
        monkeypatch.chdir(temp_dir)
        target = temp_dir / "conf" / "keeper.json"

        assert main(["config", "init", "--path", str(target)]) == 0

        assert json.loads(target.read_text())["cleanup"]["confirmByDefault"] is True
