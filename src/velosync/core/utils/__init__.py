"""Shared utilities (I/O, subprocess, time, merging)."""
