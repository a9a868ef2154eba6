"""Operational tools for StreamGraph."""
