"""CENC DRM protected encoding orchestrator for the Bitmovin encoding service."""

__version__ = "1.0.0"
