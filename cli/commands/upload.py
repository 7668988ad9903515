"""Upload command."""

from pathlib import Path
from typing import Optional

import click

from bundler import PackError, prepare_bundle
from bundler.publish.controller import execute_upload, plan_upload
from bundler.publish.storage import S3ObjectStore
from cli.config import configure_logging, get_aws_region, get_key_prefix, get_max_concurrency, get_s3_endpoint
from cli.report import print_details


def _progress_dots(_bytes_sent: int) -> None:
    click.echo(".", nl=False, err=True)


@click.command()
@click.argument("bucket")
@click.argument("key", required=False)
@click.option(
    "--package-dir",
    type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
    default=Path("."),
    show_default=True,
    help="Directory containing package.json",
)
@click.option(
    "--auto-bundled-dependencies/--no-auto-bundled-dependencies",
    default=None,
    help="Bundle every runtime dependency, or only bundledDependencies",
)
@click.option("--exclude-dependency", "exclude", multiple=True, help="Leave a top-level dependency out (repeatable)")
@click.option("--skip-existing", is_flag=True, help="Name the zip by content hash and skip the upload if it exists")
@click.option("--timestamp", is_flag=True, help="Append a timestamp to the zip name")
@click.option("--keep-file", is_flag=True, help="Also save the zip in the package directory")
@click.option("--skip-prepack", is_flag=True, help="Do not run the prepack script")
@click.option("-v", "--verbose", count=True, help="Log progress (-vv for debug output)")
def upload(
    bucket: str,
    key: Optional[str],
    package_dir: Path,
    auto_bundled_dependencies: Optional[bool],
    exclude: tuple,
    skip_existing: bool,
    timestamp: bool,
    keep_file: bool,
    skip_prepack: bool,
    verbose: int,
):
    """Upload .zip to S3. BUCKET is s3://bucket[/key] or bucket[/key]."""
    configure_logging(verbose)
    try:
        prepared = prepare_bundle(
            package_dir,
            auto_bundled=auto_bundled_dependencies,
            exclude_dependencies=exclude,
            run_prepack=not skip_prepack,
            max_concurrency=get_max_concurrency(),
        )
        plan = plan_upload(
            prepared,
            bucket,
            key,
            skip_existing=skip_existing,
            timestamp=timestamp,
            key_prefix=get_key_prefix(),
        )
        print_details(plan.filename, plan.files, plan.manifest)

        store = S3ObjectStore(plan.bucket, endpoint_url=get_s3_endpoint(), region=get_aws_region())
        click.echo(f"📤 Uploading to s3://{plan.bucket}/{plan.key}...", nl=False, err=True)
        result = execute_upload(
            plan,
            store,
            skip_existing=skip_existing,
            progress=_progress_dots,
            keep_file=prepared.package_dir / plan.filename if keep_file else None,
        )
    except (PackError, ValueError) as e:
        click.echo("", err=True)
        click.echo(f"❌ {e}", err=True)
        raise click.Abort()

    if result.skipped:
        click.echo("already exists, skipped", err=True)
    else:
        click.echo("done", err=True)
