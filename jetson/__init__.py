"""Jetson Nano / JetPack probe set."""

from jetson.registry import build_registry

__all__ = ["build_registry"]
