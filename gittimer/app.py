"""Main Typer application instance."""

import typer

from gittimer.commands import init, log_time, resolve, status, watch
from gittimer.core.logging import configure_logging

app = typer.Typer(
    name="gittimer",
    help="Automatic Jira/Productive time tracking from git branch and commit activity",
    add_completion=False,
)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    configure_logging(verbose)


# Register commands
app.command(name="init")(init.command)
app.command(name="status")(status.command)
app.command(name="watch")(watch.command)
app.command(name="log")(log_time.command)
app.command(name="resolve")(resolve.command)


def main():
    """Entry point for pip-installed command."""
    app()


if __name__ == "__main__":
    main()
