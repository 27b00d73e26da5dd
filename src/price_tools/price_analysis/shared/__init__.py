"""Shared utilities for Price analysis methods."""
