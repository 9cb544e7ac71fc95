"""Core utilities shared across flowstrap modules."""
