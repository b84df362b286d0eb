"""Stateless browser actions that resume a persisted browsing session."""
