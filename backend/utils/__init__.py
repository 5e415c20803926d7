"""Utilities module - domain errors."""
