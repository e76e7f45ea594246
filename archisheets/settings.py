# archisheets/settings.py
from pydantic_settings import BaseSettings
from pydantic import ConfigDict, Field
from typing import List
from pathlib import Path


class Settings(BaseSettings):
    # Master spreadsheet (the project index). The UI can still pass its own
    # master id per request; this is only the fallback.
    master_sheet_id: str = ""

    # CORS settings
    allowed_origins: str = "http://localhost:3000,http://localhost:5173"

    # New per-project spreadsheets are titled "<prefix><project name>"
    spreadsheet_title_prefix: str = "ARCHI - "

    # Folder name used when a project name sanitizes to nothing
    project_folder_fallback_name: str = "ARCHI_PROJECTE"

    # Attempts for Sheets calls that fail with quota / server errors (429, 5xx)
    sheets_retry_attempts: int = Field(default=3, ge=1)

    log_level: str = "INFO"

    model_config = ConfigDict(
        # Always load .env from the same folder as this settings.py
        env_file=str(Path(__file__).resolve().parent / ".env"),
        extra="ignore",
    )

    def get_origins_list(self) -> List[str]:
        """Parse comma-separated origins into a list."""
        if not self.allowed_origins:
            return ["*"]
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]


_settings_instance = None

def get_settings() -> Settings:
    """Singleton pattern for settings."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
