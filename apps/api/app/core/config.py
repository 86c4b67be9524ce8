from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    APP_NAME: str = "users-posts-api"
    ENV: str = "dev"

    # protocol://[user:password@]host:port/database-name
    MONGODB_URI: str = "mongodb://127.0.0.1:27017/sample"
    MONGODB_DB: str | None = None  # overrides the database named in the URI
    MONGODB_SERVER_SELECTION_TIMEOUT_MS: int = 5000
    MONGODB_DEBUG: bool = False  # log every driver command

    LOG_LEVEL: str = "INFO"
    PASSWORD_HASH_ROUNDS: int = 12

    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100
    PROFILE_IMAGE_MAX_BYTES: int = 2 * 1024 * 1024

settings = Settings()
