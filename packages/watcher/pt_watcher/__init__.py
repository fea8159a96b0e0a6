"""
Project Tracker notification watcher

Follows a user's notification feed from the Project Tracker API, over SSE
when it can and by interval polling when it cannot.
"""

__version__ = "0.1.0"
