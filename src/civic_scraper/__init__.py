# ABOUTME: Civic scraper package root
# ABOUTME: Manifest-driven, self-healing structural extraction of civic data from HTML pages

__version__ = "0.1.0"
