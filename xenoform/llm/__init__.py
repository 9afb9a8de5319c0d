"""Gemini (text) and Imagen (image) model access."""
