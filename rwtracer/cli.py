# rwtracer/cli.py - Command-line interface
"""
Command-line interface for the read/write syscall tracer.
"""

import signal
import sys
import threading

import click

from rwtracer.errors import FatalStartupError
from rwtracer.utils.logger import setup_logging
from rwtracer.utils.config import Config
from rwtracer.utils.helpers import check_prerequisites


@click.group()
@click.option('--log-level', default='INFO', type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']))
@click.option('--log-file', type=click.Path(), help='Diagnostic log file path')
@click.pass_context
def cli(ctx, log_level, log_file):
    """
    eBPF read/write syscall tracer

    Attaches kprobes to the read() and write() syscall entries and prints a
    line for every call.
    """
    ctx.ensure_object(dict)

    setup_logging(level=log_level, log_file=log_file)

    ctx.obj['log_level'] = log_level
    ctx.obj['log_file'] = log_file


def install_signal_handlers(stop_event: threading.Event):
    """
    Make SIGINT and SIGTERM request a cooperative stop.
    """
    def handler(signum, frame):
        click.echo(f"\nReceived signal {signum}, shutting down...", err=True)
        stop_event.set()

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)


@cli.command()
@click.option('-v', '--verbose/--no-verbose', default=None, help='Emit a trace_pipe line per traced call (overrides the config file)')
@click.option('-m', '--message', help='Custom message (max 63 bytes, longer is truncated)')
@click.option('--config', 'config_file', type=click.Path(exists=True), help='Configuration file')
@click.option('--event-log', type=click.Path(), help='File to append event lines to')
@click.option('--poll-timeout', type=click.IntRange(min=1), help='Perf buffer poll timeout (ms)')
@click.pass_context
def run(ctx, verbose, message, config_file, event_log, poll_timeout):
    """
    Trace read() and write() until interrupted.

    Example:
        rwtracer run
        rwtracer run -v -m "Custom probe message"
        rwtracer run --config configs/default.yaml --event-log /tmp/rw.log
    """
    from rwtracer.collector.control_store import truncate_message
    from rwtracer.collector.tracer import SyscallTracer
    from rwtracer.exporters.log_file import open_log_sink
    from rwtracer.exporters.stdout import ConsoleSink

    try:
        cfg = Config(config_file)
    except (OSError, ValueError) as e:
        click.echo(f"Error: invalid configuration: {e}", err=True)
        sys.exit(1)

    # CLI options override the file
    if verbose is not None:
        cfg.set('probe.verbose', verbose)
    if message is not None:
        cfg.set('probe.message', message)
    if event_log is not None:
        cfg.set('output.event_log', event_log)
    if poll_timeout is not None:
        cfg.set('tracer.poll_timeout_ms', poll_timeout)

    verbose = cfg.get('probe.verbose')
    message = truncate_message(cfg.get('probe.message', '')).decode('utf-8', 'ignore')

    click.echo("eBPF Probe Program")
    click.echo("==================")
    click.echo(f"Verbose mode: {'enabled' if verbose else 'disabled'}")
    click.echo(f"Message: {message}")
    click.echo("Press Ctrl+C to stop\n")

    console = ConsoleSink()
    sinks = [console]
    log_sink = open_log_sink(cfg.get('output.event_log'))
    if log_sink:
        sinks.append(log_sink)

    tracer = SyscallTracer(
        {
            'verbose': verbose,
            'message': message,
            'poll_timeout_ms': cfg.get('tracer.poll_timeout_ms'),
            'page_cnt': cfg.get('tracer.page_cnt'),
        },
        sinks,
    )

    stop_event = threading.Event()
    install_signal_handlers(stop_event)

    exit_code = 0
    try:
        tracer.run(stop_event)
    except FatalStartupError as e:
        click.echo(f"Error: {e}", err=True)
        exit_code = 1
    finally:
        if log_sink:
            log_sink.close()

    console.print_stats(tracer.get_stats())
    sys.exit(exit_code)


@cli.command()
def check():
    """
    Check system prerequisites for running the tracer.

    Verifies:
    - Root privileges
    - BCC installation
    - Kernel eBPF support
    """
    if check_prerequisites():
        click.echo("\n✓ All prerequisites met!")
        sys.exit(0)
    else:
        click.echo("\n✗ Some prerequisites are missing")
        sys.exit(1)


if __name__ == '__main__':
    cli(obj={})
