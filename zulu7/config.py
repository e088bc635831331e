"""
Zulu7 — Server Configuration
──────────────────────────────
Everything tunable comes from the environment (or a local .env file).

Environment variables:
  PORT                 — HTTP port (default 8080)
  HOST                 — bind address (default 0.0.0.0)
  STREAMER_URL         — camera streamer to pass through (default http://127.0.0.1:1984)
  ZULU7_PUBLISHED_DIR  — where published dashboard configs live
  ZULU7_DIST_DIR       — compiled UI served as a single-page app
  REDIS_URL            — optional; caches stay in memory when unset
  LOG_LEVEL            — logging level name (default INFO)
"""

import os

from dotenv import load_dotenv

load_dotenv()

# ── Server ─────────────────────────────────────────────────────
PORT          = int(os.getenv("PORT", "8080"))
HOST          = os.getenv("HOST", "0.0.0.0")
STREAMER_URL  = os.getenv("STREAMER_URL", "http://127.0.0.1:1984").rstrip("/")
PUBLISHED_DIR = os.getenv("ZULU7_PUBLISHED_DIR", "published_configs")
DIST_DIR      = os.getenv("ZULU7_DIST_DIR", "dist")
REDIS_URL     = os.getenv("REDIS_URL", "")
LOG_LEVEL     = os.getenv("LOG_LEVEL", "INFO").upper()

# ── Outbound pool (shared by every upstream call) ──────────────
POOL_MAX_CONNECTIONS = 100
POOL_MAX_KEEPALIVE   = 10
POOL_KEEPALIVE_S     = 60
REQUEST_TIMEOUT      = 15

# ── Health probes ──────────────────────────────────────────────
HTTP_PROBE_TIMEOUT = 5
TCP_PROBE_TIMEOUT  = 3
PING_TIMEOUT       = 2
RECHECK_DELAY      = 2.0

# ── Drive bypass ───────────────────────────────────────────────
DRIVE_DOWNLOAD_URL = "https://drive.google.com/uc?export=download&id={file_id}"
MAX_REDIRECTS      = 5

# ── User agents ────────────────────────────────────────────────
BROWSER_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
YAHOO_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)
HEALTH_UA = BROWSER_UA + " Zulu7/1.0"
BOT_UA    = "Mozilla/5.0 (compatible; Zulu7Bot/1.0)"
RSS_UA    = "Mozilla/5.0 (compatible; Zulu7Bot/1.0; +http://zulu7.local)"

# ── Camera streamer paths relayed to STREAMER_URL ──────────────
STREAMER_PATHS = ["/api/streams", "/stream.html", "/video-stream.js", "/video-rtc.js"]
STREAMER_WS_PATH = "/api/ws"
WS_OPEN_TIMEOUT  = 10
