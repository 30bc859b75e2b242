# -*- coding: utf-8 -*-
# diehard/app/core/__init__.py
# =============================================================================
# Core of the Diehard raffle service: settings, logging, errors, DB access and
# pure helpers. No business logic is imported from here.
# =============================================================================

from __future__ import annotations

from .config_core import get_settings
from .logging_core import get_logger

__all__ = ["get_settings", "get_logger"]
