"""Accessibility snapshots and element references."""
