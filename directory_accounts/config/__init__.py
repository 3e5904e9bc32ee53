"""Configuration module for the directory accounts service."""
from .settings import DirectoryConfig, load_settings

__all__ = ["DirectoryConfig", "load_settings"]
