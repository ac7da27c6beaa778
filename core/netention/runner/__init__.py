"""Capability registry and the built-in capabilities."""
