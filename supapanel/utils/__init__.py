"""Utility modules for the panel service."""
