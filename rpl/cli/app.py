from __future__ import annotations

import typer

from rpl import __version__
from rpl.cli.commands.github_release import github_release
from rpl.cli.commands.release_pr import release_pr


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# Commands
app.command("release-pr")(release_pr)
app.command("github-release")(github_release)


def _show_version(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit(code=0)


@app.callback()
def _main(  # pyright: ignore[reportUnusedFunction]
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", callback=_show_version, is_eager=True
    ),
) -> None:
    pass


def main() -> None:
    app()
