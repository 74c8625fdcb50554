"""
Django settings package for the school access-control core.

This package contains environment-specific settings modules:
- base.py: Common settings for all environments
- development.py: Development-specific settings (also used by the test suite)
- production.py: Production-specific settings

The appropriate settings module is loaded based on the DJANGO_SETTINGS_MODULE
environment variable.
"""
