"""
Weather service configuration via pydantic-settings.
All config read from environment variables with sensible defaults for local dev.
"""

from services.common.config import ServiceSettings


class Settings(ServiceSettings):
    # App
    app_name: str = "weather-service"
    port: int = 3002

    # Open-Meteo
    open_meteo_url: str = "https://api.open-meteo.com/v1/forecast"
    rate_limit_per_minute: int = 60

    # Weather cache
    cache_ttl_seconds: int = 300
    cache_sweep_interval_seconds: int = 60  # 0 disables the sweeper

    # Time service (aggregate endpoint)
    time_service_url: str = "http://localhost:3003"

    # Aggregation
    fan_out_limit: int = 10
    per_fetch_timeout_seconds: float = 10.0
    max_cities: int = 20


settings = Settings()
