"""EduScout — educational content discovery backend."""

__version__ = "1.0.0"
