"""Data loading and simulation helpers."""
