"""Tick-driven exercise session engine for sensor-monitored rehabilitation."""

__version__ = "0.1.0"
