"""Manage virtual hosts in the VeloServe registry."""
