# config.py
from typing import List, Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    # --- Metadata ---
    APP_NAME: str = "Professionalism Analyzer API"
    APP_VERSION: str = "1.0.0"
    APP_DESCRIPTION: str = "Real-time facial expression scoring for interview preparation"

    # --- Logging ---
    LOG_LEVEL: str = Field("INFO")
    LOG_FILE: Optional[str] = Field(None)
    JSON_LOGS: bool = Field(False)

    # --- CORS ---
    ALLOWED_ORIGINS: List[str] = Field(["*"])

    # --- Detection ---
    DETECTOR_BACKEND: str = Field("mediapipe")
    MEDIAPIPE_MODEL_SELECTION: int = Field(0, ge=0, le=1)

    # --- Frames pushed over WebSocket (0 keeps the client size) ---
    FRAME_WIDTH: int = Field(640, ge=0, le=1920)
    FRAME_HEIGHT: int = Field(480, ge=0, le=1080)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


settings = AppSettings()
