from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Document store configuration
    DATABASE_URL: str = Field(...)

    # Blob store configuration
    bucket_name: str = Field(...)
    aws_region: str = Field("eu-west-2")
    s3_endpoint_url: Optional[str] = Field(None)
    max_file_size_mb: int = Field(10)

    # LLM configuration
    azure_openai_endpoint: str = Field(...)
    azure_openai_api_key: str = Field(...)
    azure_openai_deployment_name: str = Field(...)
    azure_openai_api_version: str = Field(...)
    max_completion_tokens: int = Field(4000)
    llm_temperature: Optional[float] = Field(None)
    llm_timeout_seconds: float = Field(120.0)

    # Prompt assembly
    example_char_limit: int = Field(6000)
    max_examples: int = Field(3)

    # Logging configuration
    env: str = Field("dev")
    log_level: str = Field("DEBUG")
    log_format: str = Field("%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s")
    logs_dir: Path = Field(Path("logs"))

    cors_origins: List[str] = Field(default_factory=lambda: [
        "http://localhost:3000",
        "http://localhost:5173",
    ])

    @field_validator("azure_openai_endpoint")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024


settings = Settings()
