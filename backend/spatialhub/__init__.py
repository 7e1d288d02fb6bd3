"""Tainan Spatial Hub: resource/demand overlay dashboard with AI insight reports."""

__version__ = "2.0.0"
