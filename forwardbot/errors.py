class ForwardBotError(Exception):
    """Base class for errors raised by forwardbot."""


class ConfigError(ForwardBotError):
    pass


class StoreError(ForwardBotError):
    """A key-value read or write failed. Not retried."""


class ModerationError(ForwardBotError):
    """The moderation service could not produce a verdict."""
