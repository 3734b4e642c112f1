"""MUSISCORE - HTTP API."""
