"""Core library for velosync: registry, hooks, services, status and API."""
