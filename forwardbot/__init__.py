"""forwardbot: relay guest messages to a single admin over Telegram."""

__version__ = "0.1.0"
