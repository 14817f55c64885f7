"""Courier: deferred and recurring post delivery."""
