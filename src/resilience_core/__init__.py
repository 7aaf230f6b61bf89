"""Shared resilience primitives for service runtimes."""
