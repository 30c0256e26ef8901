"""Scheduled benchmark runner Lambda."""
