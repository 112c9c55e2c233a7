"""Resolution engine: domain, interfaces and services (no I/O details)."""
