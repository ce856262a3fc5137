"""Fuel price and EV charge station search service."""

__version__ = "1.0.0"
