"""
church_rbac.auth

Authentication/authorization package.

Responsibilities:
- Session token helpers and validation.
- FastAPI auth dependencies (Identity -> resolved principal -> access checks).
"""

# Package marker.
