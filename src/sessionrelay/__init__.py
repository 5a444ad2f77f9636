"""sessionrelay — keeps a messaging session alive and relays it to a backend API."""

__version__ = "0.1.0"
