"""
Infrastructure layer - external service integrations.

- storage: key-value backends (R2, local filesystem, in-memory)

These wrappers translate between external APIs and the KeyValueStore
protocol the core depends on.
"""
