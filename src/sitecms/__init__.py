"""
sitecms - content sync client for the corporate site CMS.
Contains modules for fetching and saving page sections with a local cache
fallback, change broadcasting, uploads, and the admin and display surfaces.
"""

__version__ = "0.1.0"
