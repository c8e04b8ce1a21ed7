"""
Main CLI entry point for file-sorter.
"""

import click

from .. import __version__
from .organize import organize, scan


@click.group()
@click.version_option(__version__, prog_name="file-sorter")
def cli() -> None:
    """Move files from source folders into date or extension folders."""


cli.add_command(scan)
cli.add_command(organize)


if __name__ == "__main__":
    cli()
