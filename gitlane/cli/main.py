"""Command-line entry point for gitlane"""

import os
import sys

import git
from rich.console import Console

from gitlane.cli.args import parse_args
from gitlane.config import Config
from gitlane.logging_config import get_logger, setup_logging

console = Console()
logger = get_logger(__name__)


def find_repo_root(path: str) -> str:
    """Top level of the work tree containing ``path``."""
    repo = git.Repo(path, search_parent_directories=True)
    try:
        return repo.working_tree_dir
    finally:
        repo.close()


def main(argv=None):
    """Main entry point for the application."""
    parsed_args = None
    try:
        parsed_args = parse_args(argv)

        # The TUI owns the terminal, so logs always go to the file
        setup_logging(verbose=parsed_args.verbose, debug=parsed_args.debug, tui_mode=True)

        config = Config.from_env(
            refresh_interval=parsed_args.refresh_interval,
            state_file=parsed_args.state_file,
            verbose=parsed_args.verbose,
            debug=parsed_args.debug,
            lock_order_checks=not parsed_args.no_lock_checks,
            **({"demo": True} if parsed_args.demo else {}),
        )

        if parsed_args.debug:
            console.print("[yellow]Debug mode enabled[/yellow]")
            console.print("[yellow]Configuration:[/yellow]")
            for key, value in config.to_dict().items():
                console.print(f"  {key}: {value}")

        try:
            repo_path = find_repo_root(parsed_args.path or os.getcwd())
        except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError):
            console.print("[red]Error: not a git repository[/red]")
            return 1

        from gitlane.gui import Gui
        from gitlane.ui import GitlaneApp, TextualRenderer

        renderer = TextualRenderer()
        gui = Gui(config, repo_path, renderer=renderer)
        app = GitlaneApp(gui, renderer)
        app.run()
        return app.return_code or 0
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        return 1
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        console.print(f"[red]Error: {e}[/red]")
        if parsed_args is not None and parsed_args.debug:
            console.print_exception()
        return 1


if __name__ == "__main__":
    sys.exit(main())
