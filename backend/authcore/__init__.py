"""Expose the application factory at package level.

``from authcore import create_app`` builds a Flask app with the auth core
wired in; the framework-free services live in :mod:`authcore.services`.
"""

from __future__ import annotations

from .factory import create_app

__all__ = ["create_app"]
