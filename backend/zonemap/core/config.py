from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "postgresql+asyncpg://postgres:postgres@db:5432/zonemap"
    PINCODES_PATH: str = "data/pincodes.json"
    BLUEPRINT_PATH: str = "data/zones_blueprint.json"

    MAX_UPLOAD_MB: int = 100
    MAX_ROW_ERRORS: int = 50
    COLUMN_SAMPLE_SIZE: int = 100
    DETECTION_THRESHOLD: float = 0.4

    LOG_LEVEL: str = "INFO"
    LOG_DIR: Optional[str] = None

    class Config:
        env_file = ".env"

    @property
    def max_upload_bytes(self) -> int:
        return self.MAX_UPLOAD_MB * 1024 * 1024


settings = Settings()
