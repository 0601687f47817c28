"""CourseBot - Telegram bot for browsing and downloading course material.

Package entry point. Exports the version string only; all functional
modules are imported lazily by main.py to keep startup fast.
"""

__version__ = "0.1.0"
