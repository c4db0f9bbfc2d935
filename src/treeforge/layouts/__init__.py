"""Bundled layout descriptions (JSON)."""
