"""Configuration management for mailgate."""

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

FASTMAIL_SESSION_URL = "https://api.fastmail.com/jmap/session"


@dataclass
class JmapConfig:
    """JMAP account configuration.

    The API token MUST be provided via environment variables:
    - MAILGATE_API_TOKEN: bearer token for the JMAP API
    - FASTMAIL_API_TOKEN: accepted as a fallback

    Generate one at Fastmail -> Settings -> Privacy & Security -> Integrations -> API tokens.
    """
    session_url: str = FASTMAIL_SESSION_URL
    api_token: str = field(default="", repr=False)
    timeout_seconds: float = 30.0
    max_body_value_bytes: int = 1024 * 1024  # 1MB per inlined body value
    from_address: str | None = None  # Identity to send from; first identity if unset

    def __post_init__(self):
        """Load the API token from environment variables."""
        env_token = os.environ.get("MAILGATE_API_TOKEN") or os.environ.get("FASTMAIL_API_TOKEN")
        if env_token:
            self.api_token = env_token


@dataclass
class ConfirmConfig:
    """Preview/confirm gate configuration.

    The token signing secret can be set via MAILGATE_CONFIRM_SECRET. When unset,
    tokens are signed with a random per-process secret.
    """
    require_token: bool = False
    token_ttl_seconds: int = 600
    secret: str = field(default="", repr=False)

    def __post_init__(self):
        """Load the signing secret from environment."""
        env_secret = os.environ.get("MAILGATE_CONFIRM_SECRET")
        if env_secret:
            self.secret = env_secret


@dataclass
class ServerConfig:
    name: str = "fastmail"
    default_limit: int = 25
    max_limit: int = 100
    resource_scheme: str = "fastmail"


@dataclass
class Config:
    jmap: JmapConfig = field(default_factory=JmapConfig)
    confirm: ConfirmConfig = field(default_factory=ConfirmConfig)
    server: ServerConfig = field(default_factory=ServerConfig)


def load_config(path: str | Path) -> Config:
    """Load configuration from a TOML file."""
    path = Path(path)
    with path.open("rb") as f:
        data = tomllib.load(f)

    jmap_data = data.get("jmap", {})
    jmap_config = JmapConfig(
        session_url=jmap_data.get("session_url", FASTMAIL_SESSION_URL),
        timeout_seconds=jmap_data.get("timeout_seconds", 30.0),
        max_body_value_bytes=jmap_data.get("max_body_value_bytes", 1024 * 1024),
        from_address=jmap_data.get("from_address"),
    )

    confirm_data = data.get("confirm", {})
    confirm_config = ConfirmConfig(
        require_token=confirm_data.get("require_token", False),
        token_ttl_seconds=confirm_data.get("token_ttl_seconds", 600),
    )

    server_data = data.get("server", {})
    server_config = ServerConfig(
        name=server_data.get("name", "fastmail"),
        default_limit=server_data.get("default_limit", 25),
        max_limit=server_data.get("max_limit", 100),
        resource_scheme=server_data.get("resource_scheme", "fastmail"),
    )

    logger.debug(f"Loaded configuration from {path}")
    return Config(
        jmap=jmap_config,
        confirm=confirm_config,
        server=server_config,
    )
