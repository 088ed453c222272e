"""Game domain services: catalog, paid play start and per-game rules.

This package contains pure(ish) domain logic that should be imported by
HTTP routes, keeping transport concerns separated from core game
mechanics.
"""
