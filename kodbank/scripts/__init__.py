"""Operational scripts run with python -m."""
