import os
import tempfile
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    PROJECT_NAME: str = "PDF Functions"
    VERSION: str = "1.0.0"
    API_V1_STR: str = "/api/v1"
    LOG_LEVEL: str = "INFO"
    
    # Comma-separated
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:8000"
    
    # Scratch storage, one namespace per request is created beneath it
    SCRATCH_ROOT: str = os.path.join(tempfile.gettempdir(), "pdf_functions")
    
    # LibreOffice
    LIBREOFFICE_BIN: str = "/usr/bin/libreoffice"
    CONVERSION_POLL_INTERVAL: float = Field(0.5, ge=0)
    CONVERSION_POLL_ATTEMPTS: int = Field(10, ge=1)
    CONVERSION_PROCESS_TIMEOUT: float = 120.0
    
    # Remote rendition API (client-credentials flow)
    REMOTE_AUTHORITY_HOST: str = "https://login.microsoftonline.com"
    REMOTE_API_BASE: str = "https://graph.microsoft.com/v1.0"
    REMOTE_SCOPE: str = "https://graph.microsoft.com/.default"
    REMOTE_TIMEOUT: float = 30.0
    
    # Watermark defaults
    WATERMARK_FONT: str = "Helvetica"
    WATERMARK_FONT_SIZE: float = 50.0
    WATERMARK_COLOR: str = "blue"
    WATERMARK_OPACITY: float = 0.5
    WATERMARK_ROTATION: float = 45.0
    WATERMARK_POSITION_X: float = 0.5
    WATERMARK_POSITION_Y: float = 0.6
    
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
