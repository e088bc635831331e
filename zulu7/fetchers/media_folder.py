"""
Zulu7 — Media Folder Scraper
─────────────────────────────
/api/media-folder?url=<folder>

Turns a shared folder into a slideshow playlist for the media widget.
No API keys: both sources are scraped from their public HTML.

  Google Drive folder   drive.google.com/drive/folders/<id>
      File IDs are pulled from the JS blobs embedded in the page. Each ID's
      MIME type sits somewhere near its first occurrence, so a window of
      text around it is searched. IDs without a video/ or image/ type
      nearby (folders, docs, noise) are dropped.

  HTTP auto-index       any nginx/Apache style directory listing
      Every href is resolved against the listing URL and kept if its
      extension is on the media allowlist. The absolute URL is the id.

Listings are cached for 5 minutes per folder URL.
"""

import logging
import re
from typing import Dict, List
from urllib.parse import urljoin

import httpx

from zulu7.cache.ttl_cache import TTLCache
from zulu7.config import BROWSER_UA
from zulu7.errors import BadRequest, UpstreamError

log = logging.getLogger("zulu7.media_folder")

DRIVE_FOLDER_MARKER = "drive.google.com/drive/folders/"

DRIVE_HEADERS = {
    "User-Agent": BROWSER_UA,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}

_DRIVE_ID_RE = re.compile(r'(?:\[|\[null,)(?:"|&quot;)([a-zA-Z0-9_-]{28,45})(?:"|&quot;)')
_MIME_RE     = re.compile(r"video/[a-zA-Z0-9_.-]+|image/[a-zA-Z0-9_.-]+")
_HREF_RE     = re.compile(r'href="([^"]+)"', re.IGNORECASE)
_EXT_RE      = re.compile(r"\.([a-z0-9]+)$", re.IGNORECASE)

MIME_WINDOW_BEFORE = 500
MIME_WINDOW_AFTER  = 1000

MEDIA_TYPES = {
    ".mp4":  "video/mp4",
    ".webm": "video/webm",
    ".mkv":  "video/x-matroska",
    ".jpg":  "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png":  "image/png",
    ".gif":  "image/gif",
    ".webp": "image/webp",
}

# Sort links, parent dir and site root on auto-index pages
_SKIP_LINKS = ("../", "/")


def parse_drive_folder(html: str) -> List[Dict[str, str]]:
    ids = dict.fromkeys(m.group(1) for m in _DRIVE_ID_RE.finditer(html))
    files = []
    for file_id in ids:
        start = html.find(file_id)
        if start == -1:
            continue
        window = html[max(0, start - MIME_WINDOW_BEFORE):start + MIME_WINDOW_AFTER]
        mime = _MIME_RE.search(window)
        if mime:
            files.append({"id": file_id, "mimeType": mime.group(0), "source": "gdrive"})
    return files


def parse_directory_listing(html: str, base_url: str) -> List[Dict[str, str]]:
    files = []
    seen = set()
    for match in _HREF_RE.finditer(html):
        link = match.group(1)
        if link.startswith("?C=") or link in _SKIP_LINKS:
            continue
        try:
            full_url = urljoin(base_url, link)
        except ValueError:
            continue
        if full_url in seen:
            continue
        seen.add(full_url)

        ext = _EXT_RE.search(full_url)
        if not ext:
            continue
        mime = MEDIA_TYPES.get(f".{ext.group(1).lower()}")
        if mime:
            files.append({"id": full_url, "mimeType": mime, "source": "http"})
    return files


async def _fetch_html(client: httpx.AsyncClient, url: str, headers: dict, label: str) -> str:
    try:
        r = await client.get(url, headers=headers, follow_redirects=True)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        log.error(f"{label} Error for {url}: {e}")
        raise UpstreamError(str(e) or f"{label} fetch failed")
    if not r.is_success:
        raise UpstreamError(f"{label} fetch failed: {r.status_code}")
    return r.text


async def list_media_folder(client: httpx.AsyncClient, cache: TTLCache, url: str) -> List[Dict[str, str]]:
    if DRIVE_FOLDER_MARKER in url:
        key = f"gdrive-{url}"
        cached = await cache.get(key)
        if cached is not None:
            return cached
        files = parse_drive_folder(await _fetch_html(client, url, DRIVE_HEADERS, "Drive"))
        log.info(f"Drive folder: {len(files)} media files")

    elif url.startswith(("http://", "https://")):
        key = f"http-{url}"
        cached = await cache.get(key)
        if cached is not None:
            return cached
        html  = await _fetch_html(client, url, {"User-Agent": "Mozilla/5.0"}, "HTTP")
        files = parse_directory_listing(html, url)
        log.info(f"Directory listing {url[:60]}: {len(files)} media files")

    else:
        raise BadRequest("Unsupported URL format")

    await cache.set(key, files)
    return files
