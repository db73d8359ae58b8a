#!/usr/bin/env python3
"""
apkgate command line entry point.
"""
import click

from .gate_cli import evaluate
from .run_cli import run, from_github


@click.group()
def cli():
    """Gate, build and publish Android test APKs"""
    pass


cli.add_command(evaluate)
cli.add_command(run)
cli.add_command(from_github)


if __name__ == "__main__":
    cli()
