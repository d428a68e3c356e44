"""Core of a Trojan-style proxy: configuration, option dispatch, relaying, recording, geodata lookup and logging."""

__version__ = "0.1.0"