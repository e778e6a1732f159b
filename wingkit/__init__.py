"""Server configuration file rewriting and a client for the panel's remote API."""

__version__ = "0.1.0"