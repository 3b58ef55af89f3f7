import os
from functools import lru_cache

from pydantic_settings import BaseSettings

from .services.orchestration.mode import PanelMode

# Data roots per panel mode
PRODUCTION_DATA_PATH = "/etc/supapanel"
DEVELOPMENT_DATA_PATH = "data"


class Settings(BaseSettings):
    # Database - async SQLAlchemy URL (postgresql+asyncpg://... or sqlite+aiosqlite://...)
    database_url: str

    # Panel mode: "development" (paths relative to cwd) or "production" (/etc/supapanel)
    # Use the parsed enum via settings.mode rather than comparing strings
    supapanel_mode: str = "development"

    @property
    def mode(self) -> PanelMode:
        """Parsed panel mode."""
        return PanelMode.from_string(self.supapanel_mode)

    # Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = "INFO"

    # Path overrides - empty means "derive from the panel mode"
    data_path: str = ""
    traefik_dynamic_path: str = ""
    projects_path: str = ""
    core_template_path: str = ""

    @property
    def resolved_data_path(self) -> str:
        """Root directory for everything the panel writes to disk."""
        if self.data_path:
            return self.data_path
        if self.mode.is_production:
            return PRODUCTION_DATA_PATH
        return os.path.join(os.getcwd(), DEVELOPMENT_DATA_PATH)

    @property
    def resolved_traefik_dynamic_path(self) -> str:
        """
        Directory watched by Traefik's file provider.

        - Production: /etc/supapanel/traefik/dynamic
        - Development: ./traefik/dynamic
        """
        if self.traefik_dynamic_path:
            return self.traefik_dynamic_path
        if self.mode.is_production:
            return os.path.join(PRODUCTION_DATA_PATH, "traefik", "dynamic")
        return os.path.join(os.getcwd(), "traefik", "dynamic")

    @property
    def resolved_projects_path(self) -> str:
        """Directory holding one sub-directory per project slug."""
        if self.projects_path:
            return self.projects_path
        return os.path.join(self.resolved_data_path, "projects")

    @property
    def resolved_core_template_path(self) -> str:
        """Docker template fetched by the initialize step (compose file, volumes)."""
        if self.core_template_path:
            return self.core_template_path
        return os.path.join(self.resolved_data_path, "core", "docker")

    # Traefik certificate resolver name (must match the static traefik.yml)
    traefik_cert_resolver: str = "letsencrypt"

    # Backend the panel's own router points at
    panel_service_url: str = "http://supapanel-panel:3000"

    # Host used for fallback Studio URLs and the public API URL written to .env
    public_host: str = "localhost"

    # Subprocess timeouts (seconds) for docker compose invocations
    compose_command_timeout: int = 600  # up / stop / down
    compose_query_timeout: int = 30  # ps / config / logs

    # Default number of log lines returned per request
    default_log_tail: int = 100

    # Spacing between the port blocks of consecutive projects
    project_port_stride: int = 10

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra fields from .env file
        case_sensitive = False  # Allow lowercase env vars to match uppercase field names


@lru_cache()
def get_settings():
    return Settings()
