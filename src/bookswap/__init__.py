"""BookSwap core: request lifecycle and notification fanout."""

__version__ = "0.1.0"
