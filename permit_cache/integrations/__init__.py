"""
Framework integrations.

Import the framework module explicitly (``permit_cache.integrations.fastapi``)
so the core package does not require the framework at import time.
"""
