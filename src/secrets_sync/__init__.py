"""
secrets-sync

File: src/secrets_sync/__init__.py

Purpose
- Package root for the tool that syncs local ``.env`` files to GitHub
  repository secrets.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
"""

from secrets_sync.constants import VERSION

__version__ = VERSION

__all__ = ["__version__"]
