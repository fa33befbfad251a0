from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


def get_project_root() -> Path:
    current_path = Path(__file__).parent
    while current_path != current_path.parent:
        if (current_path / "pyproject.toml").exists():
            return current_path
        current_path = current_path.parent
    return Path(".")


class TransformPreset(BaseModel):
    prompt: str
    strength: float = Field(ge=0.0, le=1.0)
    steps: int = Field(gt=0)
    guidance_scale: float = Field(gt=0.0)


def default_transform_presets() -> dict[str, TransformPreset]:
    return {
        "light": TransformPreset(
            prompt="slightly damaged photo, light scratches and dents, same subject",
            strength=0.4,
            steps=30,
            guidance_scale=7.5,
        ),
        "heavy": TransformPreset(
            prompt="heavily damaged photo, cracked, crumpled and battered, same subject",
            strength=0.8,
            steps=40,
            guidance_scale=7.5,
        ),
    }


class Settings(BaseSettings):
    # Application Settings
    APP_NAME: str = Field(default="Image Transform Service")
    DEBUG: bool = Field(default=False)
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8003)

    # CORS Settings
    ALLOWED_ORIGINS: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:8000"]
    )

    # Remote Transform Service
    TRANSFORM_API_URL: str = Field(default="https://api.example.com/transform")
    TRANSFORM_API_KEY: str | None = Field(default=None)
    TRANSFORM_MODEL: str = Field(default="img2img-v1")
    REQUEST_TIMEOUT: float = Field(default=30.0)  # seconds
    STATUS_CHECK_TIMEOUT: float = Field(default=5.0)

    # Transform Presets
    TRANSFORM_PRESETS: dict[str, TransformPreset] = Field(
        default_factory=default_transform_presets
    )
    DEFAULT_WIDTH: int | None = Field(default=512)
    DEFAULT_HEIGHT: int | None = Field(default=512)

    # Retry Settings
    MAX_RETRY_ATTEMPTS: int = Field(default=3)
    RETRY_BASE_DELAY: float = Field(default=1.0)
    RETRY_MAX_DELAY: float = Field(default=10.0)

    # Cache Settings
    CACHE_ENABLED: bool = Field(default=True)
    CACHE_MAX_SIZE: int = Field(default=50)
    CACHE_TTL: int = Field(default=24 * 60 * 60)  # 24 hours

    # Orchestrator Settings
    HISTORY_LIMIT: int = Field(default=50)
    UPLOAD_STEPS: int = Field(default=5)
    UPLOAD_STEP_DELAY: float = Field(default=0.2)
    PHASE1_THRESHOLD: int = Field(default=50)
    PHASE2_THRESHOLD: int = Field(default=100)
    ENABLE_PROGRESSIVE_TRANSFORM: bool = Field(default=True)

    # Image Preparation Settings
    MAX_IMAGE_DIMENSION: int = Field(default=1024)
    JPEG_QUALITY: int = Field(default=80)

    # Logging Settings
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FILE: str = Field(default="./logs/transform_service.log")

    model_config = {
        "env_file": get_project_root() / ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "ignore",
    }

    @property
    def absolute_log_file(self) -> str:
        """Get absolute path for the log file."""
        return str(get_project_root() / self.LOG_FILE)

    @property
    def transform_types(self) -> list[str]:
        return list(self.TRANSFORM_PRESETS.keys())


@lru_cache()
def get_settings() -> Settings:
    return Settings()
