# -*- coding: utf-8 -*-
# diehard/app/routes/admin/__init__.py
# Admin routers; every route here sits behind require_admin.

from __future__ import annotations

from .admin_raffles_routes import router as admin_raffles_router

__all__ = ["admin_raffles_router"]
