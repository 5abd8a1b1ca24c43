"""
Notekeep - a personal note-taking client core.
This package implements the reactive note repository behind a note list:
durable storage, live queries that push every change to their subscribers,
and a swipe-to-delete flow with a short undo window.

This version uses synchronous operations.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("notekeep")
except PackageNotFoundError:
    __version__ = "0.3.0"
