class BatteryLimitError(Exception):
    """Base class for every error the tool reports to the user."""


class ParseError(BatteryLimitError):
    pass


class InvalidRangeError(BatteryLimitError):
    pass


class IoError(BatteryLimitError):
    """A control file, unit file or config file could not be read or written."""


class PermissionDeniedError(IoError):
    def __init__(self, path):
        super().__init__(f"Permission denied writing {path} (this must be run as root)")
        self.path = path


class ServiceError(BatteryLimitError):
    """systemctl failed or could not be run."""
