"""Account fleet health scoring, alerting and reporting."""

__version__ = "0.1.0"
