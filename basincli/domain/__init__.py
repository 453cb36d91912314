"""Domain Layer: value objects, error taxonomy, events and ports.

Nothing in here performs I/O. Infrastructure adapters depend on these
definitions, never the other way round.
"""
