"""Session record persistence."""
