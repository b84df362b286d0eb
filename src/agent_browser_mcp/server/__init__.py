"""HTTP surface for the browser tools."""
