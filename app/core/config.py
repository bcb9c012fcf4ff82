from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "postgresql://insights:insights@db:5432/insights"
    APP_ENV: str = "development"
    SECRET_KEY: str = "changeme-secret-key"
    LOG_LEVEL: str = "INFO"

    # Comma-separated allowed origins, or "*" to allow all.
    # Example: "https://myapp.com,https://api.myapp.com"
    CORS_ORIGINS: str = "*"

    # Bearer token the /artifacts and /actions routes accept.
    # Empty string disables store auth (development only).
    STORE_API_TOKEN: str = ""

    # Where the persistence gateway sends generated artifacts.
    ARTIFACT_STORE_URL: str = "http://localhost:8000"
    STORE_TIMEOUT_SECONDS: float = 10.0

    ARTIFACT_TTL_DAYS: int = 30
    ANALYSIS_VERSION: str = "1.0"

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
