"""clibridge - browser-mediated login and API keys for command-line clients."""

__version__ = "0.1.0"
