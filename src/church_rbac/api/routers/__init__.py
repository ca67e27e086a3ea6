"""
church_rbac.api.routers

Router modules mounted by `church_rbac.api.app.create_app`.
"""
