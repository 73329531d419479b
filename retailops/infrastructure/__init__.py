"""Infrastructure Layer: cross-cutting concerns (logging, trace sinks).

Invariants:
    - Infrastructure never imports core domain logic; sinks satisfy core
      protocols structurally
"""
