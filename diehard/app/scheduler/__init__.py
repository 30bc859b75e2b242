"""Diehard background ticks (run as separate processes, not inside the API)."""
