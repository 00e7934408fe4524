"""Command-line argument parsing for worktree-keeper."""

import argparse
from typing import Optional, Sequence

from worktree_keeper.__version__ import __version__


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="worktree-keeper",
        description="Create git worktrees and clean them up together with their dev container artifacts",
        epilog="Cleanup must be run from the main repository checkout, never from inside a worktree.",
    )
    parser.add_argument("--version", action="version", version=f"worktree-keeper {__version__}")
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    create = subparsers.add_parser(
        "create",
        help="Create a worktree on a new branch",
        description="Create a worktree on a new branch. Only the cd line is printed on stdout, "
        "so `eval \"$(worktree-keeper create my-feature)\"` moves into it.",
    )
    create.add_argument("feature", help="Feature name, used for the branch and the worktree path")
    create.add_argument("ref", nargs="?", help="Base branch, tag or commit (default: current HEAD)")
    create.add_argument("-v", "--verbose", action="store_true", help="Show verbose output")
    create.add_argument("--debug", action="store_true", help="Show debug information for troubleshooting")

    cleanup = subparsers.add_parser(
        "cleanup",
        help="Remove worktrees and their container artifacts",
        description="Remove worktrees and the containers, images, volumes and networks named after them.",
    )
    cleanup.add_argument("name", nargs="?", help="Worktree to clean up (name, path suffix or branch)")
    cleanup.add_argument("--list", action="store_true", help="List worktrees and their artifacts, change nothing")
    cleanup.add_argument("--interactive", action="store_true", help="Pick worktrees to clean up")
    cleanup.add_argument("--merged", action="store_true", help="Clean up worktrees whose branch is merged")
    cleanup.add_argument("--all", action="store_true", help="Clean up every worktree except the main repository")
    cleanup.add_argument(
        "--dry-run",
        action="store_true",
        help="Preview mode - show what would be removed without removing anything",
    )
    cleanup.add_argument("--force", action="store_true", help="Skip confirmations")
    cleanup.add_argument(
        "--force-dirty",
        action="store_true",
        help="Remove worktrees even if they have uncommitted changes",
    )
    cleanup.add_argument("-v", "--verbose", action="store_true", help="Show verbose output")
    cleanup.add_argument("--debug", action="store_true", help="Show debug information for troubleshooting")

    config = subparsers.add_parser("config", help="Manage configuration files")
    config_commands = config.add_subparsers(dest="config_command", metavar="ACTION")
    config_commands.required = True
    init = config_commands.add_parser("init", help="Write a sample configuration file")
    init.add_argument(
        "--path",
        help="File to write (default: .worktree-keeper.json in the current directory)",
    )
    init.add_argument("-v", "--verbose", action="store_true", help="Show verbose output")
    init.add_argument("--debug", action="store_true", help="Show debug information for troubleshooting")

    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    return build_parser().parse_args(argv)


def cleanup_options(args: argparse.Namespace) -> dict:
    """Options mapping handed to the cleanup core."""
    return {
        "list": args.list,
        "interactive": args.interactive,
        "merged": args.merged,
        "all": args.all,
        "dryRun": args.dry_run,
        "force": args.force,
        "forceDirty": args.force_dirty,
        "verbose": args.verbose,
    }
