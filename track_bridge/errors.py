"""Exceptions raised by the bridge."""


class BridgeError(Exception):
    """Base class for all bridge failures."""


class ConfigError(BridgeError):
    """Environment configuration is missing or invalid."""


class WatchDirectoryError(BridgeError):
    """The watched directory cannot be used at startup."""


class SourceError(BridgeError):
    """A line source was used incorrectly."""


class TopicUnavailableError(BridgeError):
    """The destination topic handle could not be obtained."""


class PublisherNotOpenError(BridgeError):
    """Publish was called on a publisher that is not open."""
