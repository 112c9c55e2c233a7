"""Core services: registry, matching, resolution cache, hover intent."""
