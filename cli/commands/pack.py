"""Pack command."""

from pathlib import Path
from typing import Optional, Tuple

import click

from bundler import PackError, prepare_bundle, write_zip
from cli.config import configure_logging, get_max_concurrency
from cli.report import print_details, relative_to_cwd


@click.command()
@click.option(
    "--package-dir",
    type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
    default=Path("."),
    show_default=True,
    help="Directory containing package.json",
)
@click.option("--dry-run", is_flag=True, help="Display contents without writing file")
@click.option(
    "--pack-destination",
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory in which to save .zip files (defaults to the package directory)",
)
@click.option(
    "--auto-bundled-dependencies/--no-auto-bundled-dependencies",
    default=None,
    help="Bundle every runtime dependency, or only bundledDependencies",
)
@click.option("--exclude-dependency", "exclude", multiple=True, help="Leave a top-level dependency out (repeatable)")
@click.option("--skip-prepack", is_flag=True, help="Do not run the prepack script")
@click.option("-v", "--verbose", count=True, help="Log progress (-vv for debug output)")
def pack(
    package_dir: Path,
    dry_run: bool,
    pack_destination: Optional[Path],
    auto_bundled_dependencies: Optional[bool],
    exclude: Tuple[str, ...],
    skip_prepack: bool,
    verbose: int,
):
    """Pack .zip file for AWS Lambda."""
    configure_logging(verbose)
    try:
        prepared = prepare_bundle(
            package_dir,
            auto_bundled=auto_bundled_dependencies,
            exclude_dependencies=exclude,
            run_prepack=not skip_prepack,
            max_concurrency=get_max_concurrency(),
        )
        result = write_zip(pack_destination=pack_destination, dry_run=dry_run, prepared=prepared)
        print_details(result.filename, result.files, result.manifest)

        if not dry_run:
            click.echo(f"✅ {relative_to_cwd(result.filename)}", err=True)
    except (PackError, ValueError) as e:
        click.echo(f"❌ {e}", err=True)
        raise click.Abort()
