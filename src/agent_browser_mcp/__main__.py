from .cli import app

app(prog_name="agent-browser-mcp")
