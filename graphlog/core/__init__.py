"""Core interfaces for graphlog."""
