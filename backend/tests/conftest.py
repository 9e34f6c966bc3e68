from __future__ import annotations

import os
import sys
from pathlib import Path

# Add backend folder to sys.path so `import donation_verifier...` works when running from the repo root
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

# Must be set before settings are imported: selects the stub Dramatiq broker
os.environ["ENVIRONMENT"] = "test"
os.environ.pop("SENTRY_DSN", None)
os.environ.pop("DEV_AUTH_BYPASS", None)
