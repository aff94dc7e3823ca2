from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import List

class Settings(BaseSettings):
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:5173"]
    create_schema: bool = True  # Create tables on startup

    class Config:
        env_file = ".env"
        env_prefix = "API_"

@lru_cache()
def get_settings() -> Settings:
    return Settings()
