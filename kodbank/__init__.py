"""Kodbank: account registration, cookie sessions and balance lookup."""

__version__ = "0.1.0"
