from __future__ import annotations

import os
import tempfile


os.environ.setdefault("JWT_SECRET", "test-signing-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("STORAGE_PATH", tempfile.mkdtemp(prefix="deadmansdrop-tests-"))
os.environ.setdefault("SCHEDULER_ENABLED", "false")
