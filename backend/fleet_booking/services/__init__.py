"""Booking form services."""
