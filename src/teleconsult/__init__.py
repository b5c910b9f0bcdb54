"""
Teleconsult: doctor availability and consultation matching service

A clean architecture-based backend that tracks which doctors are online,
matches incoming patient consultation requests to the best available doctor
and manages the request lifecycle through to completion.
"""

__version__ = "0.1.0"
__author__ = "Teleconsult Team"
__description__ = "Doctor availability and consultation matching service"
