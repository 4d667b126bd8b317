"""
Shared test setup.

Settings are read once at import time, so the required environment variables
(and throwaway log / snapshot directories) are seeded before any
``analytics_hub`` module is imported.
"""
import os
import tempfile

_scratch = tempfile.mkdtemp(prefix="analytics_hub_tests_")

os.environ.setdefault("OAUTH_CLIENT_ID", "test-client-id.apps.googleusercontent.com")
os.environ.setdefault("OAUTH_CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("OAUTH_REDIRECT_URI", "http://localhost:3000/auth/google/callback")
os.environ.setdefault("SESSION_SECRET", "test-session-secret")
os.environ.setdefault("LOG_DIR", os.path.join(_scratch, "logs"))
os.environ.setdefault("ACCOUNT_DATA_DIR", os.path.join(_scratch, "account_data"))
