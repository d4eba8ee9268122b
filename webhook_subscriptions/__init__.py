"""Webhook subscription registry and delivery history service."""

__version__ = "1.0.0"
