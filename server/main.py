# server/main.py
from fastmcp import FastMCP
from app.di import build_container
from app.logging import configure_logging
from server.tools.files import register_file_tools

def create_app() -> FastMCP:
    """
    Build DI container, create FastMCP host, and register tools.
    Keep the server (protocol) separate from tool/service logic.
    """
    container = build_container()
    configure_logging(container.settings.LOG_LEVEL)

    mcp = FastMCP("FileBrowserMCP", version="0.1.0")

    # Register tools (thin adapters)
    register_file_tools(mcp, container.fb_service)

    return mcp


if __name__ == "__main__":
    app = create_app()
    # stdio transport: client (agent/IDE) launches this process and speaks JSON-RPC on stdin/stdout
    app.run(transport="stdio")
