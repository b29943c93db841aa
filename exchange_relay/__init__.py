"""CORS relay in front of the exchange REST API."""

__version__ = "0.1.0"
