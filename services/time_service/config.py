"""
Time service configuration via pydantic-settings.
All config read from environment variables with sensible defaults for local dev.
"""

from services.common.config import ServiceSettings


class Settings(ServiceSettings):
    # App
    app_name: str = "time-service"
    port: int = 3003

    # WorldTimeAPI
    world_time_api_url: str = "http://worldtimeapi.org/api/timezone"

    # Warm the cache with common cities before serving
    prefill_on_startup: bool = True


settings = Settings()
