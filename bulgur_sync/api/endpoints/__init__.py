"""Typed wrappers for the individual server endpoints."""
