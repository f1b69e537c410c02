"""Scanning, unification and mutation engine."""
