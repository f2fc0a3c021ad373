#!/usr/bin/env python3
# backend/run.py
"""
Development server runner.

Serves dispatchly.main:app with auto-reload. DATABASE_URL defaults to a local
SQLite file so a fresh checkout starts without Postgres. Run
`alembic upgrade head` first to create the schema.
"""
import os
from pathlib import Path

backend_dir = Path(__file__).parent
os.chdir(backend_dir)

os.environ.setdefault("DATABASE_URL", "sqlite:///./dispatchly_dev.db")

import uvicorn

if __name__ == "__main__":
    port = int(os.environ.get("PORT", "8000"))
    print("Starting Dispatchly development server...")
    print(f"Database: {os.environ['DATABASE_URL']}")
    print(f"Access at: http://localhost:{port}")
    print(f"API Docs: http://localhost:{port}/docs")

    uvicorn.run("dispatchly.main:app", host="0.0.0.0", port=port, reload=True, log_level="info")
