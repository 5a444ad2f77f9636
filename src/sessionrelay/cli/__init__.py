"""CLI entry point — Click group with global options."""

from __future__ import annotations

import logging

import click

from sessionrelay import __version__


@click.group()
@click.version_option(version=__version__, prog_name="sessionrelay")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """sessionrelay — keep a messaging session alive and relay it to a backend API."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _register_commands() -> None:
    from sessionrelay.cli.serve import serve  # noqa: F811
    from sessionrelay.cli.status import status  # noqa: F811

    main.add_command(serve)
    main.add_command(status)


_register_commands()
