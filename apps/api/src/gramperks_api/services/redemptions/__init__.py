"""Perk validation, cooldown evaluation, and approval."""
