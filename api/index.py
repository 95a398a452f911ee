# api/index.py
#
# =================================================================================
# ||  BOOTS RIDE - VERCEL ENTRYPOINT                                            ||
# =================================================================================
#
# Vercel imports the top-level `app` from this file. All routes, models and
# configuration live in the `bootsee` package; on Vercel (VERCEL=1) the SQLite
# database and uploads are placed under /tmp, and Firebase credentials are read
# from the FIREBASE_SERVICE_ACCOUNT_BASE64 environment variable.
#
# Tech Stack: Python, FastAPI, SQLAlchemy, Uvicorn
# =================================================================================
import os
import sys

import uvicorn

# Vercel runs this file from /var/task/api; the package sits one level up.
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from bootsee.config import CONFIG  # noqa: E402
from bootsee.main import app  # noqa: E402,F401

if __name__ == "__main__":
    print(f"--- Starting {CONFIG['PROJECT_NAME']} (Local Development) ---")
    print("Access at: http://127.0.0.1:8000")
    if not os.environ.get("SECRET_KEY"):
        print("\nWARNING: SECRET_KEY is not set; issued tokens will not survive a restart.\n")
    uvicorn.run("bootsee.main:app", host="0.0.0.0", port=8000, reload=True)
