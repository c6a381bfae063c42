"""Shared utilities: logging, durations and text formatting."""
