"""MUSISCORE - Services."""
