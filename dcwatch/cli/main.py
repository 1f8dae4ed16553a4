"""
dcwatch CLI - Main entry point.

Commands:
    dcwatch watch <path>  - Discover a service supporting <path> and print its events
    dcwatch parse <path>  - Show how a capability path is parsed
    dcwatch version       - Show the version
"""

import typer

from .commands import parse, watch

app = typer.Typer(
    name="dcwatch",
    help="dcwatch - Discover a Device Connect service by capability and relay its events.",
    no_args_is_help=True,
)

# Register commands
app.command(name="watch", help="Wait for a service supporting PATH and print its events.")(watch.watch_path)
app.command(name="parse", help="Parse a capability path and print it as JSON.")(parse.parse_path)


@app.command()
def version():
    """
    Show the dcwatch version.
    """
    from dcwatch import __version__
    typer.echo(f"dcwatch v{__version__}")


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
