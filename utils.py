import os
import json
import psutil
import logging
import subprocess
from os import path
from logging.handlers import TimedRotatingFileHandler

from errors import IoError, ParseError, ServiceError

DEFAULT_CONFIG = {
    "power_supply_dir": "/sys/class/power_supply",
    "battery_names": ["BAT0", "BAT1", "BATT", "BATC"],
    "threshold_file": "charge_control_end_threshold",
    "unit_dir": "/etc/systemd/system",
    "unit_name": "battery-charge-threshold.service",
    "command_timeout": 10,
    "log_dir": "logs",
    "log_name": "battery_limit",
}

INFO_FILES = [
    "alarm",
    "capacity",
    "capacity_level",
    "charge_control_end_threshold",
    "cycle_count",
    "energy_full",
    "energy_full_design",
    "energy_now",
    "manufacturer",
    "model_name",
    "power_now",
    "present",
    "serial_number",
    "status",
    "technology",
    "type",
    "voltage_min_design",
    "voltage_now",
]

# Handlers installed by configure_logging, so a second call replaces them
_log_handlers = []


# File Operations
def read_file(file_path):
    try:
        with open(file_path, "r") as file:
            return file.read().strip()
    except FileNotFoundError:
        raise IoError(f"{file_path} does not exist") from None
    except UnicodeDecodeError:
        raise ParseError(f"{file_path} is not valid text") from None
    except OSError as e:
        raise IoError(f"Failed to read from {file_path}: {e.strerror}") from e


def getAbsPath(relPath):
    basepath = path.dirname(__file__)
    return path.abspath(path.join(basepath, relPath))


# Configuration
def read_config(config_file=None):
    """Return DEFAULT_CONFIG, overlaid with the JSON object in config_file if given."""
    config = dict(DEFAULT_CONFIG)
    if config_file is None:
        return config
    try:
        overrides = json.loads(read_file(config_file))
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid config file {config_file}: {e}") from e
    if not isinstance(overrides, dict):
        raise ParseError(f"Invalid config file {config_file}: expected a JSON object")
    for key, value in overrides.items():
        if key in config:
            config[key] = value
        else:
            logging.warning(f"Ignoring unknown config key: {key}")
    # Lets the boot unit re-apply the limit with the same settings
    config["config_file"] = path.abspath(config_file)
    return config


# Command Execution
def execute_command(args, timeout=10):
    """Run args without a shell and return stdout; raise ServiceError on any failure."""
    timeout = int(timeout)
    command = " ".join(args)
    logging.info(f"Executing command: {command}")
    try:
        result = subprocess.run(args, timeout=timeout, text=True, capture_output=True)
    except subprocess.TimeoutExpired:
        logging.info(f"Command timed out after {timeout} seconds: {command}")
        raise ServiceError(f"'{command}' timed out after {timeout} seconds") from None
    except OSError as e:
        logging.info(f"Command execution error: {type(e).__name__}")
        raise ServiceError(f"Could not run '{command}': {e}") from e
    if result.returncode != 0:
        logging.info(f"Command failed with status {result.returncode}: {result.stderr}")
        raise ServiceError(
            f"'{command}' failed with status {result.returncode}: {result.stderr.strip()}"
        )
    return result.stdout.strip()


# Battery Status Functions
class BatteryStatus:
    def __init__(self, battery_path):
        self.battery_path = battery_path

    def read_info(self):
        """Return (name, value) pairs for every INFO_FILES entry present in the battery directory."""
        info = []
        for name in INFO_FILES:
            try:
                info.append((name, read_file(os.path.join(self.battery_path, name))))
            except (IoError, ParseError):
                logging.debug(f"Skipping unreadable battery file: {name}")
        return info

    @staticmethod
    def get_summary():
        battery = psutil.sensors_battery()
        if battery is None:
            return None
        if battery.secsleft == psutil.POWER_TIME_UNLIMITED:
            time_left = "unlimited"
        elif battery.secsleft == psutil.POWER_TIME_UNKNOWN:
            time_left = "unknown"
        else:
            hours, remainder = divmod(int(battery.secsleft), 3600)
            time_left = f"{hours}h{remainder // 60:02d}m"
        return {
            "percent": round(battery.percent),
            "plugged": battery.power_plugged,
            "time_left": time_left,
        }


# Logging Configuration
def configure_logging(config, verbose=False):
    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    for handler in _log_handlers:
        logger.removeHandler(handler)
        handler.close()
    _log_handlers.clear()

    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)
    _log_handlers.append(console_handler)

    # File handler
    log_dir = getAbsPath(config["log_dir"])
    try:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = TimedRotatingFileHandler(
            filename=os.path.join(log_dir, f"{config['log_name']}.log"),
            when="midnight",
            interval=1,
            backupCount=1,
        )
    except OSError as e:
        logging.warning(f"File logging disabled, cannot write to {log_dir}: {e.strerror}")
        return
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)
    _log_handlers.append(file_handler)
