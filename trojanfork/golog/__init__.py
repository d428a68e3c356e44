"""Coloured, timestamped logger with its byte buffer and colour helpers."""

__all__ = ["buffer", "colorful", "logger"]