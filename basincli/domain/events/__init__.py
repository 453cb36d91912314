"""Domain Events emitted by the request engine."""
