"""CLI entrypoint."""

import click

from .commands.pack import pack
from .commands.upload import upload


class DefaultCommandGroup(click.Group):
    """Group that runs default_command when the first argument is not a subcommand."""

    def __init__(self, *args, default_command: str = "pack", **kwargs):
        super().__init__(*args, **kwargs)
        self.default_command = default_command

    def parse_args(self, ctx, args):
        if not args or (args[0] not in self.commands and args[0] not in ctx.help_option_names + ["--version"]):
            args = [self.default_command] + list(args)
        return super().parse_args(ctx, args)


@click.group(cls=DefaultCommandGroup)
@click.version_option(version="1.0.0", prog_name="pack-lambda")
def cli():
    """pack-lambda - pack a Node.js package and its dependencies into an AWS Lambda zip."""
    pass


cli.add_command(pack)
cli.add_command(upload)


if __name__ == "__main__":
    cli()
