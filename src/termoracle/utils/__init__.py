"""Shared helpers: logging setup and image processing."""
