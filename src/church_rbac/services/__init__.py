"""
church_rbac.services

Service-layer package.

Responsibilities:
- Own transaction boundaries and persistence decisions.
- Enforce actor authorization before any mutation.
"""

# Package marker.
