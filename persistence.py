import io
import os
import re
import sys
import logging
import configparser
from functools import partial

from errors import IoError, PermissionDeniedError, ServiceError
from utils import execute_command, getAbsPath

_EXEC_START_LIMIT = re.compile(r"\bset ([0-9]+)$")
_NEEDS_QUOTING = re.compile(r"[\s'\"\\]")


def _new_parser():
    parser = configparser.ConfigParser(interpolation=None)
    # systemd keys are case sensitive
    parser.optionxform = str
    return parser


def _quote(arg):
    # systemd expands $ and % in command lines
    arg = arg.replace("%", "%%").replace("$", "$$")
    if not arg or _NEEDS_QUOTING.search(arg):
        arg = '"' + arg.replace("\\", "\\\\").replace('"', '\\"') + '"'
    return arg


def build_exec_start(threshold, config_file=None):
    args = [sys.executable, getAbsPath("main.py")]
    if config_file is not None:
        args += ["--config", config_file]
    args += ["set", str(threshold)]
    return " ".join(_quote(arg) for arg in args)


def render_unit(threshold, config_file=None):
    """Return the text of a oneshot unit that re-applies threshold at boot."""
    parser = _new_parser()
    parser["Unit"] = {
        "Description": "Set the battery charge threshold",
        "After": "multi-user.target",
        "StartLimitBurst": "0",
    }
    parser["Service"] = {
        "Type": "oneshot",
        "Restart": "on-failure",
        "ExecStart": build_exec_start(threshold, config_file),
    }
    parser["Install"] = {"WantedBy": "multi-user.target"}
    buffer = io.StringIO()
    parser.write(buffer, space_around_delimiters=False)
    return buffer.getvalue()


def parse_unit_limit(contents):
    """Return the threshold baked into a unit's ExecStart line, or None."""
    parser = _new_parser()
    try:
        parser.read_string(contents)
        exec_start = parser["Service"]["ExecStart"]
    except (configparser.Error, KeyError):
        return None
    match = _EXEC_START_LIMIT.search(exec_start.strip())
    if not match or int(match.group(1)) > 100:
        return None
    return int(match.group(1))


class PersistenceManager:
    """Installs and removes the systemd unit that restores the charge limit after a reboot."""

    def __init__(self, unit_path, run_command=None, config_file=None):
        self.unit_path = unit_path
        self.config_file = config_file
        self.unit_name = os.path.basename(unit_path)
        self.run_command = run_command or execute_command

    @classmethod
    def from_config(cls, config):
        return cls(
            os.path.join(config["unit_dir"], config["unit_name"]),
            run_command=partial(execute_command, timeout=config["command_timeout"]),
            config_file=config.get("config_file"),
        )

    def is_installed(self):
        return os.path.isfile(self.unit_path)

    def persisted_limit(self):
        try:
            with open(self.unit_path, "r") as file:
                return parse_unit_limit(file.read())
        except (OSError, UnicodeDecodeError):
            return None

    def install(self, threshold):
        logging.info(f"Creating systemd service {self.unit_path}")
        try:
            with open(self.unit_path, "w") as file:
                file.write(render_unit(threshold, self.config_file))
        except PermissionError:
            raise PermissionDeniedError(self.unit_path) from None
        except OSError as e:
            raise IoError(f"Failed to write {self.unit_path}: {e.strerror}") from e
        self.run_command(["systemctl", "daemon-reload"])
        self.run_command(["systemctl", "enable", self.unit_name])

    def remove(self):
        if not self.is_installed():
            # Clears an enablement left behind by a unit file deleted by hand
            try:
                self.run_command(["systemctl", "disable", self.unit_name])
            except ServiceError as e:
                logging.info(f"No systemd service to disable: {e}")
            return
        logging.info(f"Removing systemd service {self.unit_path}")
        self.run_command(["systemctl", "disable", self.unit_name])
        try:
            os.remove(self.unit_path)
        except FileNotFoundError:
            pass
        except PermissionError:
            raise PermissionDeniedError(self.unit_path) from None
        except OSError as e:
            raise IoError(f"Failed to remove {self.unit_path}: {e.strerror}") from e
        self.run_command(["systemctl", "daemon-reload"])
