"""Command-line entry point for worktree-keeper"""

import os
import sys
from typing import Optional, Sequence

from rich.console import Console
from rich.markup import escape

from worktree_keeper.cli.args import cleanup_options, parse_args
from worktree_keeper.config import ConfigResolver, WorkspaceConfig
from worktree_keeper.core.cleanup import CleanupOrchestrator
from worktree_keeper.exceptions import WorktreeKeeperError
from worktree_keeper.logging_config import setup_logging
from worktree_keeper.models.cleanup import CleanupOptions
from worktree_keeper.services.artifacts import ArtifactLocator
from worktree_keeper.services.command_executor import GitExecutor, RuntimeExecutor
from worktree_keeper.services.display_service import DisplayService
from worktree_keeper.services.git import MergedBranchAnalyzer, WorktreeRegistry
from worktree_keeper.services.worktree_creator import WorktreeCreator

console = Console()
# Progress and errors; stdout of `create` is reserved for the cd line
err_console = Console(stderr=True)


def run_cleanup(args, config: WorkspaceConfig, cwd: str) -> int:
    options = CleanupOptions.from_dict(cleanup_options(args))
    git_executor = GitExecutor(cwd=cwd)
    orchestrator = CleanupOrchestrator(
        config,
        registry=WorktreeRegistry(git_executor),
        analyzer=MergedBranchAnalyzer(git_executor),
        locator=ArtifactLocator(config, RuntimeExecutor(cwd=cwd, binary=config.docker.runtime)),
        display=DisplayService(verbose=args.verbose, output=console),
        cwd=cwd,
    )
    orchestrator.run(args.name, options)
    # Per-target failures are part of the summary, not a process failure
    return 0


def run_create(args, config: WorkspaceConfig, cwd: str) -> int:
    creator = WorktreeCreator(config, GitExecutor(cwd=cwd))
    created = creator.create(args.feature, args.ref)
    DisplayService(verbose=args.verbose, output=err_console).display_created(
        created.path, created.branch, created.env_copied
    )
    print(created.cd_command)
    return 0


def run_config_init(args, cwd: str) -> int:
    written = ConfigResolver(cwd=cwd).write_sample(args.path)
    console.print(f"[green]✓ Wrote sample configuration to {escape(str(written))}[/green]")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the application."""
    debug = False
    try:
        parsed_args = parse_args(argv)
        debug = parsed_args.debug

        # Setup logging before loading configuration so layer warnings show
        log_file = setup_logging(verbose=parsed_args.verbose, debug=debug)

        cwd = os.getcwd()
        if parsed_args.command == "config":
            return run_config_init(parsed_args, cwd)

        config = ConfigResolver(cwd=cwd).resolve()
        if config.cleanup.verbose_logging and not (parsed_args.verbose or debug):
            setup_logging(verbose=True)

        if debug:
            err_console.print(f"[yellow]Debug mode enabled, logging to {escape(str(log_file))}[/yellow]")
            err_console.print("[yellow]Configuration:[/yellow]")
            for key, value in config.to_dict().items():
                err_console.print(f"  {key}: {escape(str(value))}")

        if parsed_args.command == "create":
            return run_create(parsed_args, config, cwd)
        return run_cleanup(parsed_args, config, cwd)
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Operation cancelled by user[/yellow]")
        return 1
    except WorktreeKeeperError as e:
        err_console.print(f"[red]Error: {escape(str(e))}[/red]")
        if debug:
            err_console.print_exception()
        return 1


if __name__ == "__main__":
    sys.exit(main())
