"""Inspect and switch the active web server."""
