"""Favorites persistence."""
