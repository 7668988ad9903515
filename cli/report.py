"""Human-facing bundle report."""

import os
from pathlib import Path
from typing import List, Union

import click

from bundler.models import PackageManifest


def print_details(filename: Union[str, Path], files: List[str], manifest: PackageManifest) -> None:
    """Print the archive contents and a summary to stderr."""
    click.echo(f"📦  {manifest.name}@{manifest.version}", err=True)
    click.echo(click.style("=== Zip Contents ===", fg="magenta"), err=True)
    for file in files:
        click.echo(file, err=True)
    click.echo(click.style("=== Zip Details ===", fg="magenta"), err=True)
    click.echo(f"name:          {manifest.name}", err=True)
    click.echo(f"version:       {manifest.version}", err=True)
    click.echo(f"filename:      {relative_to_cwd(filename)}", err=True)
    click.echo(f"total files:   {len(files)}", err=True)


def relative_to_cwd(path: Union[str, Path]) -> str:
    path = str(path)
    if not os.path.isabs(path):
        return path
    try:
        return os.path.relpath(path)
    except ValueError:
        return path
