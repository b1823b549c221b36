"""Hosting-panel hook integration."""
