"""
HealthBook

A FastAPI-based appointment booking service: a multi-step booking wizard,
appointment management, and role-based navigation for patients, doctors
and admins.
"""

__version__ = "1.0.0"
