"""
church_rbac.rbac

Role-based access control core.

Responsibilities:
- Role levels, context types and context map normalization.
- Principal resolution against the member store.
- Allow/deny evaluation for a required level and optional scope.
"""

# Package marker; import from submodules.


# --- Module Notes -----------------------------------------------------------
# Every call site (API dependencies, services) goes through the resolver/evaluator
# pair here instead of reading role columns directly.
