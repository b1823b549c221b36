"""Shared test doubles and timing constants."""
