"""Core orchestration services: registry, circuit breaker, facade, vector search."""
