"""Fixture-backed stand-ins for the booking platform."""
