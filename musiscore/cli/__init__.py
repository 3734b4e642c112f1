"""MUSISCORE - Command line interface."""
