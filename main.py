import logging
import functools

import click

from charge_threshold import FULL_THRESHOLD, ControlFile, find_battery, validate_limit
from errors import BatteryLimitError
from persistence import PersistenceManager
from utils import BatteryStatus, configure_logging, read_config


def report_errors(func):
    """Turn BatteryLimitError into a click error: message on stderr, exit status 1."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except BatteryLimitError as e:
            logging.debug(f"{type(e).__name__}: {e}")
            raise click.ClickException(str(e)) from e

    return wrapper


def print_changed_limit(old_limit, new_limit):
    click.echo(f"🔋{old_limit} -> 🔋{new_limit}")


def validate_value(ctx, param, value):
    try:
        return validate_limit(value)
    except BatteryLimitError as e:
        raise click.BadParameter(str(e)) from e


@click.group()
@click.option(
    "--config",
    "config_file",
    type=click.Path(dir_okay=False),
    default=None,
    help="JSON file overriding the default settings",
)
@click.option("--verbose", is_flag=True, default=False, help="Enable verbose logging")
@click.pass_context
@report_errors
def cli(ctx, config_file, verbose):
    """Read and set the battery charge limit."""
    config = read_config(config_file)
    configure_logging(config, verbose)
    ctx.obj = config


@cli.command("set")
@click.argument("value", callback=validate_value)
@click.option(
    "-p",
    "--persist",
    is_flag=True,
    default=False,
    help="Persist after system reboot, i.e. create a systemd service",
)
@click.pass_obj
@report_errors
def set_command(config, value, persist):
    """Change battery charge limit (0-100)."""
    control_file = ControlFile.for_battery(find_battery(config), config)
    old_limit = control_file.read()
    control_file.write(value)
    print_changed_limit(old_limit, value)

    if not persist:
        return

    click.echo("Creating systemd service")
    try:
        PersistenceManager.from_config(config).install(value)
    except BatteryLimitError as e:
        logging.info(f"Charge limit {value} applied but not persisted: {e}")
        raise click.ClickException(f"Charge limit set to {value} but not persisted: {e}") from e


@cli.command("get")
@click.pass_obj
@report_errors
def get_command(config):
    """Print current battery charge limit."""
    current_limit = ControlFile.for_battery(find_battery(config), config).read()
    persisted_limit = PersistenceManager.from_config(config).persisted_limit()
    click.echo(f"current: 🔋{current_limit}")
    click.echo(
        "persisted: " + (f"🔋{persisted_limit}" if persisted_limit is not None else "Not set")
    )


@cli.command("clean")
@click.pass_obj
@report_errors
def clean_command(config):
    """Restore 100% battery limit and remove systemd service."""
    control_file = ControlFile.for_battery(find_battery(config), config)
    old_limit = control_file.read()
    control_file.write(FULL_THRESHOLD)
    print_changed_limit(old_limit, FULL_THRESHOLD)

    manager = PersistenceManager.from_config(config)
    if manager.is_installed():
        click.echo("Removing systemd service")
    manager.remove()


@cli.command("info")
@click.pass_obj
@report_errors
def info_command(config):
    """Print battery info."""
    battery_path = find_battery(config)
    info = BatteryStatus(battery_path).read_info()
    pad_size = max((len(name) for name, _ in info), default=0)
    click.echo(f"Path: {battery_path}")
    for name, value in info:
        click.echo(f"{name:<{pad_size}} {value}")

    summary = BatteryStatus.get_summary()
    if summary is not None:
        plugged = "yes" if summary["plugged"] else "no"
        click.echo(
            f"🔋{summary['percent']}% plugged in: {plugged}, time left: {summary['time_left']}"
        )


@cli.command("help")
@click.pass_context
def help_command(ctx):
    """Show this message and exit."""
    click.echo(ctx.parent.get_help())


def main(argv=None):
    try:
        cli(args=argv, prog_name="battery-limit", standalone_mode=False)
    except click.ClickException as e:
        e.show()
        raise SystemExit(e.exit_code) from None
    except click.exceptions.Exit as e:
        raise SystemExit(e.exit_code) from None
    except click.exceptions.Abort as e:
        # click wraps Ctrl-C inside a command in Abort
        if isinstance(e.__cause__, KeyboardInterrupt):
            raise SystemExit(130) from None
        raise SystemExit(1) from None
    except KeyboardInterrupt:
        raise SystemExit(130) from None


if __name__ == "__main__":
    main()
