"""Bundled data files for scope."""
