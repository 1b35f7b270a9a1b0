"""Helpers for paths and human-readable formatting."""
