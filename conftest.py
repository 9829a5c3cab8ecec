import os

# Tests always run against the shared in-memory SQLite database.
os.environ["DATABASE_URL"] = ""
os.environ.setdefault("LOG_LEVEL", "WARNING")
