"""
Zulu7 — entry point.

    python app.py
    uvicorn app:app --host 0.0.0.0 --port 8080
"""

import logging

from zulu7.config import HOST, LOG_LEVEL, PORT
from zulu7.server import create_app

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(message)s")
log = logging.getLogger("zulu7")

app = create_app()


if __name__ == "__main__":
    import uvicorn
    log.info(f"Server running at http://localhost:{PORT}")
    uvicorn.run("app:app", host=HOST, port=PORT, reload=False, log_level=LOG_LEVEL.lower())
