"""
Core app for the school access-control platform.

Owns the identity & role store, the role cache and its synchronizer, the
tenant root (schools), education directorates and the audit log.
"""
