"""
cli.py
------
Entry point of the 'runtime-launcher' command.

    runtime-launcher APPLICATION [ARGS]...

APPLICATION is the application directory or archive. ARGS are handed to the
application's entry function unchanged (use '--' before them if they clash
with launcher options).
"""

import logging
from pathlib import Path
from typing import List, Optional

import typer

from common.app_setup import print_error, setup_logging
from launcher.bootstrapper import launch
from launcher.config import LauncherSettings, LaunchMode
from launcher.errors import ConfigurationError

app = typer.Typer(add_completion=False, help="Load runtime dependencies, then run the application's entry point.")


@app.command(context_settings={"allow_extra_args": True, "ignore_unknown_options": True})
def run(
    application: Path = typer.Argument(..., help="Application directory or archive"),
    args: Optional[List[str]] = typer.Argument(None, help="Arguments passed to the application"),
    entry_point: Optional[str] = typer.Option(None, "--entry-point", "-e", help="Entry point as module or module:function"),
    library_path: Optional[Path] = typer.Option(None, help="Directory searched for dependencies in local mode (default: libs)"),
    cache_dir: Optional[Path] = typer.Option(None, help="Cache directory for remote mode (default: ~/.runtime-dependencies)"),
    mode: Optional[LaunchMode] = typer.Option(None, case_sensitive=False, help="How dependencies are acquired"),
    extension: Optional[str] = typer.Option(None, help="File extension of dependency artifacts (default: zip)"),
    log_file: Optional[str] = typer.Option(None, help="Log file (default: ~/.runtime-launcher/log.txt)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug messages"),
):
    """Bootstrap APPLICATION and run its entry point with ARGS."""
    setup_logging(app_name="runtime-launcher", loglevel=logging.DEBUG if verbose else logging.INFO, logfile=log_file)

    overrides = {
        "entry_point": entry_point,
        "library_path": library_path,
        "cache_dir": cache_dir,
        "mode": mode,
        "artifact_extension": extension,
    }
    try:
        settings = LauncherSettings.load(application, overrides)
    except ConfigurationError as exc:
        print_error(str(exc))
        raise typer.Exit(1)

    exit_code = launch(settings, args or [])
    raise typer.Exit(exit_code)


def main():
    app()


if __name__ == "__main__":
    main()
