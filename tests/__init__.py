from __future__ import annotations

import os
import tempfile

# Configuration is read at import time, so the test database and zone are set
# before any todo_ai module loads.
_DB_DIR = tempfile.mkdtemp(prefix="todo-ai-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR}/todos.db"
os.environ["TODO_TIMEZONE"] = "Asia/Seoul"
os.environ.pop("APP_ENV", None)
