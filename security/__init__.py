"""
Session and credential lifecycle for the library catalogue.

Framework-free: the Flask blueprints in `api` call into these modules, and
tests can drive them directly.
"""
