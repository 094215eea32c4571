"""Core helpers shared by the API and service layers."""
