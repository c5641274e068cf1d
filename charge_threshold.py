import os
import re
import logging

from errors import InvalidRangeError, IoError, ParseError, PermissionDeniedError
from utils import read_file

MIN_THRESHOLD = 0
FULL_THRESHOLD = 100

_INTEGER = re.compile(r"[+-]?[0-9]+")
_UNSIGNED = re.compile(r"[0-9]+")


def _check_range(threshold):
    if not MIN_THRESHOLD <= threshold <= FULL_THRESHOLD:
        raise InvalidRangeError(
            f"Charge limit must be between {MIN_THRESHOLD} and {FULL_THRESHOLD}, got {threshold}"
        )
    return threshold


def _to_percent(text):
    digits = text.lstrip("+-").lstrip("0")
    if len(digits) > len(str(FULL_THRESHOLD)):
        raise InvalidRangeError(
            f"Charge limit must be between {MIN_THRESHOLD} and {FULL_THRESHOLD}, got a {len(digits)}-digit number"
        )
    return _check_range(int(text))


def validate_limit(raw):
    """Parse a user-supplied charge limit percentage."""
    raw = str(raw).strip()
    if not _INTEGER.fullmatch(raw):
        raise ParseError(f"Charge limit must be a whole number, got {raw!r}")
    return _to_percent(raw)


def find_battery(config):
    """Return the first battery directory in config["battery_names"] that exists."""
    for name in config["battery_names"]:
        battery_path = os.path.join(config["power_supply_dir"], name)
        if os.path.isdir(battery_path):
            logging.debug(f"Using battery at {battery_path}")
            return battery_path
    raise IoError("Battery not found")


class ControlFile:
    """The kernel's charge_control_end_threshold file for one battery."""

    def __init__(self, path):
        self.path = path

    @classmethod
    def for_battery(cls, battery_path, config):
        return cls(os.path.join(battery_path, config["threshold_file"]))

    def read(self):
        contents = read_file(self.path)
        if not _UNSIGNED.fullmatch(contents):
            raise ParseError(f"Failed to parse battery limit from {self.path}: {contents!r}")
        return _to_percent(contents)

    def write(self, threshold):
        _check_range(threshold)
        # The kernel owns this file; never create it
        if not os.path.exists(self.path):
            raise IoError(f"{self.path} does not exist")
        logging.info(f"Writing charge threshold {threshold} to {self.path}")
        try:
            with open(self.path, "w") as file:
                file.write(str(threshold))
        except PermissionError:
            raise PermissionDeniedError(self.path) from None
        except OSError as e:
            raise IoError(f"Failed to write to {self.path}: {e.strerror}") from e
