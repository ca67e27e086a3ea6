"""
church_rbac.db

Persistence package (SQLAlchemy async).

Responsibilities:
- Provide ORM models, engine/session setup, and repositories for members,
  auth accounts (session claims) and the role audit trail.
"""

# Package marker.
