"""Exception hierarchy shared by the relay client and ingestion server."""


class RelayError(Exception):
    """Base exception for all file relay errors."""

    pass


class ConfigurationError(RelayError):
    """Raised when a configuration file is missing, unreadable or invalid."""

    pass


class WatchSetupError(RelayError):
    """Raised when the directory event subscription cannot be established."""

    pass


class FileParseError(RelayError):
    """Raised when a source file cannot be read or parsed as properties."""

    pass


class FrameError(RelayError):
    """Raised when a string cannot be framed or a frame cannot be read."""

    pass


class TransportError(RelayError):
    """Raised when a relay connection cannot be opened or written."""

    pass


class ServerSessionError(RelayError):
    """Raised when a session fails while being read or written server-side."""

    pass
