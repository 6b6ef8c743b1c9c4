"""Podcast outline and dialogue script generation with bounded verify/improve refinement."""

__version__ = "0.1.0"
