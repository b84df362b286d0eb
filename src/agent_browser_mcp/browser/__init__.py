"""Browser engine adapters and the per-call lifecycle."""
