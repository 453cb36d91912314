"""API Resilience Implementations.

Contains the transport retry service and the bounded-concurrency bulk
runner.
Bounded Context: API Resilience
"""
