"""Client library and command-line tool for the Clash RESTful API."""

__version__ = "0.1.0"