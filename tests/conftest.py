"""Root conftest: sets env vars BEFORE any coursebot module is imported.

The config.py module-level singleton requires TELEGRAM_BOT_TOKEN at import
time, so it must be set before pytest discovers any test that transitively
imports coursebot.
"""

import os
import tempfile

# Force-set (not setdefault) to prevent real env vars from leaking into tests
os.environ["TELEGRAM_BOT_TOKEN"] = "test:0000000000:AAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAA"
os.environ["COURSEBOT_DIR"] = tempfile.mkdtemp(prefix="coursebot-test-")
os.environ["MATERIALS_DIR"] = tempfile.mkdtemp(prefix="coursebot-materials-")
for _var in ("WEBHOOK_URL", "RENDER_EXTERNAL_URL", "BOT_TOKEN"):
    os.environ.pop(_var, None)
