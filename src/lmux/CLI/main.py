"""
Command Line Interface for lmux.
"""
import sys
import click
from ..MODELS.service import LogOptions, ServiceName, ServiceSelection
from ..PARSERS.settings_parser import SettingsParser
from ..MANAGERS.stream_multiplexer import StreamMultiplexer
from ..UTILS.console import debug, set_verbose

DEFAULT_TAIL_LINES = 20

class TailLinesType(click.ParamType):
    """
    A positive line count, or ``all``.
    """
    name = "N|all"

    def convert(self, value, param, ctx):
        if value == "all":
            return value
        try:
            lines = int(value)
        except (TypeError, ValueError):
            self.fail(f"{value!r} is not a number or 'all'", param, ctx)
        if lines < 1:
            self.fail(f"{value!r} must be at least 1", param, ctx)
        return lines

CONTEXT_SETTINGS = dict(help_option_names=['-h', '--help'])

@click.command(context_settings=CONTEXT_SETTINGS)
@click.option('-f', 'follow', is_flag=True, help='Follow log output')
@click.option('-n', 'tail_lines', type=TailLinesType(), default=DEFAULT_TAIL_LINES, show_default=True, metavar='N|all',
              help='Number of lines to print, or "all"')
@click.option('--config', 'config_path', type=click.Path(exists=True, dir_okay=False), default=None,
              help='YAML settings file (default: ./lmux.yml if present)')
@click.option('--verbose', '-v', is_flag=True, help='Print diagnostics to stderr')
@click.argument('services', nargs=-1, type=click.Choice([s.value for s in ServiceName]), metavar='[SERVICE]...')
def cli(follow, tail_lines, config_path, verbose, services):
    """
    Show the logs of the deployment's services, merged into one stream.

    With no SERVICE, logs of all services are shown. Lines are prefixed with
    the service name when more than one service is shown.

    \b
    Services: chat, clsi, contacts, docstore, document-updater,
              filestore, git-bridge, mongo, notifications, real-time,
              redis, spelling, tags, track-changes, web, history-v1,
              project-history
    """
    try:
        settings = SettingsParser().load(config_path)
    except (OSError, ValueError) as e:
        raise click.ClickException(f"Invalid settings: {e}")

    set_verbose(verbose or settings.verbose)

    options = LogOptions(follow=follow, tail_lines=tail_lines)
    selection = ServiceSelection.from_names(services)
    multiplexer = StreamMultiplexer(selection, options, settings)

    try:
        multiplexer.run()
    except KeyboardInterrupt:
        # Cleanup already ran when the multiplexer scope was left.
        debug("lmux", "Stopped.")

def main(argv=None):
    """
    Main entry point for the CLI. ``help`` as the first argument behaves like ``--help``.
    """
    args = list(sys.argv[1:] if argv is None else argv)
    if args[:1] == ['help']:
        args[0] = '--help'
    cli.main(args=args, prog_name='logs')

if __name__ == '__main__':
    main()
