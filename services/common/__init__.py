"""
Building blocks shared by the weather and time services.

errors        AppError taxonomy + FastAPI handlers rendering {"error": ...}
models        public JSON models (WeatherSample, TimeSample, CityResult, ...)
http_client   RetryingJSONClient: GET + decode with timeout, retry, backoff
throttle      RateLimiter: per-provider permits + debounce
cache         TTLCache over an asyncio ReadWriteLock
cancellation  CancellationToken: broadcast, level-triggered, with children
"""
