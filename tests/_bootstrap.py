"""Test helper that normalizes sys.path and environment defaults."""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


_DEFAULT_ENV_VARS: dict[str, str] = {
    "HUBSPOT_CLIENT_ID": "test-hubspot-client",
    "HUBSPOT_CLIENT_SECRET": "test-hubspot-secret",
    "HUBSPOT_REDIRECT_URI": "https://example.com/api/auth/crm/callback",
    "RECAPTCHA_SECRET_KEY": "test-recaptcha-secret",
    "TOKEN_ENCRYPTION_SECRET": "test-secret",
    "DATABASE_PATH": str(Path(tempfile.gettempdir()) / "registration-tests" / "app.db"),
}

for key, value in _DEFAULT_ENV_VARS.items():
    os.environ.setdefault(key, value)
