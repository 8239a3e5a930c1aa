from __future__ import annotations
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    # Node that receives chunk submissions
    node_url: str = Field(default="http://localhost:1984", alias="REBASE_NODE_URL")
    submit_timeout: float = Field(default=30.0, alias="REBASE_SUBMIT_TIMEOUT")

    # Global request size limit enforced by middleware (bytes)
    max_request_bytes: int = Field(
        default=64 * 1024 * 1024, alias="REBASE_MAX_REQUEST_BYTES"
    )

    log_level: str = Field(default="INFO", alias="REBASE_LOG_LEVEL")

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()  # load at import
