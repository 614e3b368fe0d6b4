"""
Admin module: navigation, page-access checks and admin account management.

Every endpoint under /admin resolves the caller's AuthState first and then
applies the page permission table.
"""

__all__: list[str] = []
