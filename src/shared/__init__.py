"""Shared post-processing utilities."""
