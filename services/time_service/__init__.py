"""Time service (port 3003): WorldTimeAPI lookups behind a never-expiring cache."""
