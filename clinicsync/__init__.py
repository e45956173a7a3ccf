"""Appointment synchronization core for the clinic dashboard."""

__version__ = "0.1.0"
