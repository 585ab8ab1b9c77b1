from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    LOG_LEVEL: str = "INFO"
    # Default monitoring polygon (YAML ring of [lat, lon] pairs)
    GEOFENCE_CONFIG: str = "config/geofence.yaml"
    # Datalastic upstream
    DATALASTIC_API_URL: str = "https://api.datalastic.com/api/v0"
    DATALASTIC_API_KEY: str | None = None
    DATALASTIC_COUNTRY_ISO: str = "US"
    # Polling timers (seconds)
    POLLING_ENABLED: bool = True
    POLL_INTERVAL_SECONDS: float = 30.0
    WATCHLIST_POLL_INTERVAL_SECONDS: float = 30.0
    # A fetch slower than this is a failed fetch; the stale cache is kept
    FETCH_TIMEOUT_SECONDS: float = 20.0
    # Route deviation
    DEVIATION_THRESHOLD_NM: float = 5.0
    STATIONARY_SPEED_KNOTS: float = 1.0
    TRACK_HISTORY_SIZE: int = 5
    # Drop track histories not updated within this horizon (0 = never)
    TRACK_REAP_HOURS: float = 24.0
    # Outbound email
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 465
    SMTP_USE_SSL: bool = True
    SMTP_USERNAME: str | None = None
    SMTP_PASSWORD: str | None = None
    SMTP_TIMEOUT_SECONDS: float = 15.0
    ALERT_SENDER: str = "VesselWatch Maritime Alert <alerts@vesselwatch.local>"
    ALERT_USER_EMAIL: str | None = None
    ALERT_COAST_GUARD_EMAIL: str | None = None
    # API authentication (if unset, all requests pass — backward compatible for local dev)
    VESSELWATCH_API_KEY: str | None = None
    # CORS origins (comma-separated string for env var support)
    CORS_ORIGINS: str = "http://localhost:3000"
    RATE_LIMIT: str = "120/minute"
    RATE_LIMIT_ENABLED: bool = True


settings = Settings()
