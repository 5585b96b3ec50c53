"""
Weather service (port 3002).

client        OpenMeteoClient: cached, rate-limited Open-Meteo lookups
time_client   TimeServiceClient: calls the time service over HTTP
aggregator    Aggregator: bounded, cancellable weather + time fan-out
cache         WeatherCache + background sweeper
"""
