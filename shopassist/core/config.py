from functools import lru_cache
from typing import Literal, Optional
import os
from pydantic_settings import BaseSettings, SettingsConfigDict

EnvName = Literal["development", "production"]

def _env_file_for(app_env: EnvName) -> str:
    return ".env.development" if app_env == "development" else ".env.production"

class Settings(BaseSettings):

    # Core
    APP_ENV: EnvName = "development"
    APP_NAME: str = "ShopAssist"
    DEBUG: bool = False
    GIT_SHA: str = "unknown"

    # Mongo
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB: str = "shopassist"

    # Redis (optional, only used to serialize cache writes across workers)
    REDIS_URL: Optional[str] = None

    # Comparison / similarity cache
    CACHE_TTL_DAYS: int = 7                     # single TTL for both record kinds
    PREFERENCE_PREFIX_LEN: int = 50             # chars of user preference folded into the key
    CACHE_LOCK_TTL_S: int = 10                  # seconds; upsert lock expiry
    CACHE_TTL_INDEX: bool = True                # let Mongo sweep expired rows

    # OpenAI
    OPENAI_API_KEY: str = ""
    OPENAI_SIMILARITY_MODEL: str = "gpt-4o"
    OPENAI_COMPARISON_MODEL: str = "gpt-4o"
    GENERATION_TIMEOUT_S: int = 60              # seconds; timeout counts as a generation failure
    COMPARISON_MAX_TOKENS: int = 1500

    # API
    ALLOWED_ORIGINS: str = ""

    # pydantic-settings config will be set dynamically in the factory below
    model_config = SettingsConfigDict(env_file=None, case_sensitive=True)

    @property
    def cache_ttl_seconds(self) -> int:
        return self.CACHE_TTL_DAYS * 24 * 3600

@lru_cache
def get_settings() -> Settings:
    """
    Factory that chooses the right .env file based on APP_ENV.
    Cache makes it cheap to inject via FastAPI dependencies.
    """
    app_env: EnvName = os.getenv("APP_ENV", "development")  # earliest switch
    env_file = _env_file_for(app_env)
    return Settings(
                _env_file=env_file,  # load .env.development or .env.production
                _env_file_encoding="utf-8"
    )
