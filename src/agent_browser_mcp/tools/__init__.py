"""Browser tool definitions and dispatch."""
