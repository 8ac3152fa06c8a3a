"""Service configuration."""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from TCSHAPER_* environment variables."""

    model_config = SettingsConfigDict(env_prefix="TCSHAPER_")

    # Docker connection (empty means docker.from_env())
    docker_url: str = ""

    # Policy labels
    label_prefix: str = "org.label-schema.tc"
    enabled_value: str = "1"
    default_bandwidth: str = "10000mbps"

    # Persisted state
    database_url: str = "sqlite:////var/lib/tcshaper/state.db"
    netns_dir: str = "/var/run/netns"

    # Host tooling
    ip_binary: str = "/usr/sbin/ip"
    tc_binary: str = "/usr/sbin/tc"

    # Event stream
    reconnect_delay: float = 5.0  # seconds

    # Read-only status API
    status_api_enabled: bool = False
    status_api_host: str = "0.0.0.0"
    status_api_port: int = 8090


settings = Settings()
