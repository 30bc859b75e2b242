"""Diehard admin services package.

======================================================================
Purpose:
    • Admin-only operations. Access control is applied by the routes
      (require_admin); services receive the admin id for auditing.
======================================================================
"""

from diehard.app.services.admin.admin_raffles_service import AdminRafflesService

__all__ = ["AdminRafflesService"]
