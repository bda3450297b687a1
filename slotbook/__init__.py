"""
slotbook - availability and booking-modification engine for a single
service provider with a weekly schedule and an external calendar.
"""

__version__ = "0.1.0"
