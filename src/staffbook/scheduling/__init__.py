"""Availability resolution and booking rules."""
