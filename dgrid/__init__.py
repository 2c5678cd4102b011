"""dgrid - live docker log grid for the terminal."""
__version__ = "0.1.0"
