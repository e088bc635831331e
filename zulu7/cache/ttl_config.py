"""
Zulu7: TTL Configuration
──────────────────────────
Single source of truth for every cache and retention duration.
Organised by how fast the upstream data goes stale.
"""

# ── Per-cache TTL (seconds) ───────────────────────────────────

TTL = {
    # Fast-changing: tickers refresh every minute
    "market":  60,                 # 1 minute   (Yahoo chart)

    # Medium: folder contents change when someone uploads
    "folder":  5 * 60,             # 5 minutes  (Drive / auto-index scrape)

    # Slow: page titles almost never change
    "title":   24 * 3600,          # 1 day
}

# ── Published config retention ───────────────────────────────
# A published dashboard is removed once nobody has opened it for this long.
PUBLISHED_RETENTION_S = 30 * 24 * 3600   # 30 days

# ── Sweep schedule ───────────────────────────────────────────
SWEEP_INTERVAL_HOURS = 1
