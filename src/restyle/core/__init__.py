"""Configuration and infrastructure setup."""
