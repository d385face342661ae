"""Exceptions raised by the airlock controller."""


class AirlockError(Exception):
    """Base class for all airlock startup and runtime errors."""


class OptionInvalid(AirlockError):
    """Unrecognized command line flag or flag value."""


class ConfigMissing(AirlockError):
    """Configuration file could not be read. Never fatal."""


class ConfigMalformed(AirlockError):
    """Configuration file could not be parsed or failed validation."""


class DeviceNotFound(AirlockError):
    """Named device is missing or is not of the expected kind."""


class ResolutionFailure(DeviceNotFound):
    """Symbolic device name is unknown to the name service."""
