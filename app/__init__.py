"""AI Studio API - image editing, ad composition and video generation with credits."""

__version__ = "1.0.0"
