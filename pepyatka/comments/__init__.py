"""Comments on posts.

Provides:
- Comment storage and the create/delete rules
- Per-viewer visibility (hidden comments of banned authors)

Note: Router is not exported here to avoid circular imports.
Import directly from pepyatka.comments.router when needed.
"""
