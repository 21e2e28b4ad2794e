"""
Full-text scraper for Bulgarian laws published on parliament.bg.
"""

__version__ = "1.0.0"
