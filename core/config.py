"""
Application configuration using Pydantic Settings
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Aggregate store settings with environment variable support"""
    
    # Database
    DATABASE_URL: str = "sqlite:///./aggregates.db"
    SQL_ECHO: bool = False
    
    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    
    # Statement lifecycle
    LOG_STATEMENTS: bool = False
    
    # Ad-hoc queries
    QUERY_MAX_LIMIT: int = 1000
    
    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
