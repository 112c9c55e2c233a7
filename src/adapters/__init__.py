"""Infrastructure adapters (HTTP, storage, event loop, HTML, rendering)."""
