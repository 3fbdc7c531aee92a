"""Conflict analysis: symbol extraction, detectors and the conflict engine.

Import ``ConflictEngine`` from ``change_guard.analysis.conflict_engine`` (or
the top-level package); this package module stays empty so the merge
resolvers can import the symbol helpers without a cycle.
"""
