# app/config.py
from pathlib import Path
from pydantic_settings import BaseSettings

from app.services.filters import DEFAULT_FILTER

class Settings(BaseSettings):
    # Filesystem sandbox
    SANDBOX_ROOT: Path = Path("./.sandbox")
    FILE_FILTER: str = DEFAULT_FILTER       # comma-separated "*.ext" patterns
    READ_ONLY: bool = False                 # deny create/delete/upload

    # HTTP MCP transport
    MCP_HTTP_HOST: str = "127.0.0.1"
    MCP_HTTP_PORT: int = 8080
    MCP_HTTP_PATH: str = "/mcp"

    # Security: Bearer token and allowed origins
    MCP_HTTP_BEARER_TOKEN: str = "change-me"         # set in .env for prod
    MCP_HTTP_ALLOWED_ORIGINS: str = "http://localhost, http://127.0.0.1"
    MCP_HTTP_ALLOW_NO_ORIGIN: bool = True            # allow non-browser clients

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
