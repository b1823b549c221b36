"""Call admin API actions (WHM plugin backend)."""
