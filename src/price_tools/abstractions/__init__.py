"""Shared abstractions for Price partition analysis."""
