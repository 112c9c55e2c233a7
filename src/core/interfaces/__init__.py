"""Core interfaces/abstractions.

Why:
- Defines contracts (Protocol) implemented by concrete adapters.
- Inverts dependencies: the core is configured with capabilities, it never
  inspects its environment to pick one.
"""
