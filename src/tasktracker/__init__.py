"""
Time Task Tracker backend package.

The ASGI application lives in ``tasktracker.main`` (``tasktracker.main:app``);
``tasktracker.main.create_app`` builds additional instances, e.g. for tests.
"""

__version__ = "0.1.0"
