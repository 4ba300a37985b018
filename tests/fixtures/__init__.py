"""Reusable fixtures for memongo tests."""
