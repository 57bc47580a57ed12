"""Vendor authentication, sessions, and login lockout."""
