"""heightwatch — block height lag monitor with Telegram alerts."""

__version__ = "0.1.0"
