"""http-acp: stateless consent and capability gateway for HTTP services."""

__version__ = "0.1.0"
