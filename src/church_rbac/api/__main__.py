"""
church_rbac.api.__main__

`python -m church_rbac.api` (or the `church-rbac` script) serves the access control API.
"""

from __future__ import annotations

import uvicorn
from fastapi import FastAPI

from church_rbac.api.app import create_app
from church_rbac.settings import get_settings


def build_app() -> FastAPI:
    return create_app(settings=get_settings())


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "church_rbac.api.__main__:build_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,  # structlog
        access_log=False,  # RequestContextMiddleware logs requests
        proxy_headers=settings.env == "prod",
    )


if __name__ == "__main__":
    main()
