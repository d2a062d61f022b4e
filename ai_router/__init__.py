"""AI router: provider registry, circuit breaker, facade and vector search."""

__version__ = "1.0.0"
