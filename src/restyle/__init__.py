"""restyle: turn a room photo and a style prompt into a generated interior design."""

__version__ = "0.1.0"
