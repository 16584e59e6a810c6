"""Test fixtures for pytest.

This module re-exports the SQLAlchemy test models for easier importing.
"""

from .models import MODELS, POST_TAGS, Base, Post, Profile, Tag, User, Vote, post_tags, seed_rows

__all__ = [
    "MODELS",
    "POST_TAGS",
    "Base",
    "Post",
    "Profile",
    "Tag",
    "User",
    "Vote",
    "post_tags",
    "seed_rows",
]
