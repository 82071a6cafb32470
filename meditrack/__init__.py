"""
MediTrack

A FastAPI-based service for booking healthcare appointments, tracking their
status, issuing prescriptions and collecting patient feedback.
"""

__version__ = "1.0.0"
