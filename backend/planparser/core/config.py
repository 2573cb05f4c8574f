from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    PROJECT_NAME: str = "Project Plan Parser"
    API_V1_STR: str = "/api/v1"
    BACKEND_CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    # Uploads
    UPLOAD_DIR: str = "uploads"

    # Worker pool
    PARSER_WORKERS: int = 4
    PARSER_QUEUE_SIZE: int = 64
    PARSER_JOB_TTL_SEC: int = 1800
    PARSER_SWEEP_INTERVAL_SEC: float = 60.0

    # LLM
    LLM_CONFIG_PATH: str = "config/llm_config.yaml"
    LLM_POLL_INTERVAL_SEC: float = 2.0
    LLM_MAX_CONCURRENT_CALLS: int = 8
    PROMPTS_DIR: str = "prompts"
    PROMPT_MAX_CHARS: int = 60000

    # Extraction
    DOCX_STRUCTURED_TEXT: bool = True
    ANNOTATE_HEADERS: bool = False
    CHECK_CYRILLIC: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "logs/app.log"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding='utf-8', case_sensitive=True, extra='ignore')

settings = Settings()
