"""
Test suite for HealthBook.

Contains unit tests for the booking services and API tests for the routes.
"""
import os

# Set environment for testing
os.environ["TESTING"] = "1"
