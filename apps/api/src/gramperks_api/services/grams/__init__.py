"""Gram catalog, identity store, and ownership claims."""
