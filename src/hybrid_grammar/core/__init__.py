"""Core value types shared across the engine."""
