class PlayboardError(Exception):
    """Base class for errors raised by playboard."""


class MoveFormatError(PlayboardError, ValueError):
    """A move payload could not be turned into a legal move."""


class InvalidSettingError(PlayboardError, ValueError):
    """A session or configuration value is outside its allowed range."""
