from pydantic_settings import BaseSettings
from functools import lru_cache
from pathlib import Path


class Settings(BaseSettings):
    """Application settings."""

    # Application
    APP_NAME: str = "PrintSync"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Database (sync run history)
    DATABASE_URL: str = "sqlite+aiosqlite:///./printsync.db"

    # Collaborators
    CENTRAL_API_URL: str = "http://localhost:53000/api/v1"
    LOCAL_API_URL: str = "http://localhost:56258/api"
    API_TOKEN: str = ""
    HTTP_TIMEOUT: float = 30.0  # seconds per roster/push request

    # Persistent MAC -> IP map
    DATA_PATH: Path = Path.home() / ".printsync" / "appData"
    MAC_IP_MAP_FILENAME: str = "mac_to_ip_map.json"

    # Network probing
    PARALLELISM: int = 50  # hosts probed concurrently per batch
    CONNECTION_TIMEOUT: float = 0.2  # seconds per TCP connect probe
    ENDPOINT_TIMEOUT: float = 3.0  # seconds per HTTP endpoint probe
    PING_TIMEOUT: int = 1  # seconds per ICMP echo
    PING_BATCH_TIMEOUT: float = 3.0  # cap for a whole ping batch
    RAW_ARP_ENABLED: bool = False  # scapy ARP request on neighbor-table miss (needs root)

    # Sync pass
    PRINTER_WORKERS: int = 4
    MAX_EXECUTION_TIME: float = 300.0  # hard ceiling for one pass
    SYNC_INTERVAL: int = 3600  # seconds between scheduled passes
    SYNC_ON_STARTUP: bool = True

    # CORS
    CORS_ORIGINS: list[str] = ["*"]

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def mac_ip_map_path(self) -> Path:
        return Path(self.DATA_PATH) / self.MAC_IP_MAP_FILENAME


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
