"""
Zulu7 — Health Check Prober
────────────────────────────
Classifies a service as "up" or "down" for the dashboard's service widgets.

  ping   ICMP echo, 2 s. Uses an unprivileged ICMP datagram socket; if the
         OS refuses one, falls back to the platform ping binary.
  http   GET, 5 s. Up on 2xx/3xx, and on 401/403 (an auth wall still
  https  means something is answering). Body is never read.
  tcp    Connect, 3 s. Up if the handshake completes.

probe() never raises. Every failure mode is "down".
"""

import asyncio
import logging
import os
import socket
import struct
import subprocess
import sys
from typing import Optional

import httpx

from zulu7.config import (
    HEALTH_UA, HTTP_PROBE_TIMEOUT, PING_TIMEOUT, RECHECK_DELAY, TCP_PROBE_TIMEOUT,
)
from zulu7.http_client import ensure_scheme

log = logging.getLogger("zulu7.health")

UP   = "up"
DOWN = "down"

PROBE_TYPES = ("ping", "http", "https", "tcp")

HEALTH_HEADERS = {
    "User-Agent": HEALTH_UA,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Cache-Control": "no-cache",
}

ICMP_ECHO_REPLY   = 0
ICMP_ECHO_REQUEST = 8


def classify_status(code: int) -> str:
    return UP if (200 <= code < 400) or code in (401, 403) else DOWN


def _checksum(data: bytes) -> int:
    if len(data) % 2:
        data += b"\x00"
    total = sum(struct.unpack(f"!{len(data) // 2}H", data))
    total = (total >> 16) + (total & 0xFFFF)
    total += total >> 16
    return ~total & 0xFFFF


def _echo_request(ident: int, seq: int) -> bytes:
    payload = b"zulu7-health"
    header  = struct.pack("!BBHHH", ICMP_ECHO_REQUEST, 0, 0, ident, seq)
    csum    = _checksum(header + payload)
    return struct.pack("!BBHHH", ICMP_ECHO_REQUEST, 0, csum, ident, seq) + payload


class HealthProber:

    def __init__(
        self,
        client: httpx.AsyncClient,
        http_timeout: float = HTTP_PROBE_TIMEOUT,
        tcp_timeout: float = TCP_PROBE_TIMEOUT,
        ping_timeout: float = PING_TIMEOUT,
        recheck_delay: float = RECHECK_DELAY,
    ):
        self.client        = client
        self.http_timeout  = http_timeout
        self.tcp_timeout   = tcp_timeout
        self.ping_timeout  = ping_timeout
        self.recheck_delay = recheck_delay

    async def probe(self, kind: str, host: str, port: Optional[str] = None) -> str:
        try:
            if kind == "ping":
                return UP if await self._ping(host) else DOWN
            if kind in ("http", "https"):
                return await self._http(kind, host, port)
            if kind == "tcp":
                return await self._tcp(host, int(port))
            log.warning(f"Unknown probe type {kind!r}")
        except Exception as e:
            log.warning(f"Health check error for {host}: {e}")
        return DOWN

    async def probe_with_recheck(self, kind: str, host: str, port: Optional[str] = None) -> str:
        """Probe, and if the answer is "down" look once more before believing it."""
        status = await self.probe(kind, host, port)
        if status == DOWN:
            await asyncio.sleep(self.recheck_delay)
            status = await self.probe(kind, host, port)
        return status

    # ── http / https ──────────────────────────────────────────
    async def _http(self, scheme: str, url: str, port: Optional[str]) -> str:
        target = httpx.URL(ensure_scheme(url, scheme))
        if port and target.port is None:
            target = target.copy_with(port=int(port))

        # Leaving the stream context closes it; the body is never buffered.
        async with self.client.stream(
            "GET", target, headers=HEALTH_HEADERS,
            timeout=self.http_timeout, follow_redirects=False,
        ) as r:
            code = r.status_code
        return classify_status(code)

    # ── tcp ───────────────────────────────────────────────────
    async def _tcp(self, host: str, port: int) -> str:
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port), self.tcp_timeout
            )
        except (OSError, asyncio.TimeoutError):
            return DOWN
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        return UP

    # ── ping ──────────────────────────────────────────────────
    async def _ping(self, host: str) -> bool:
        try:
            return await asyncio.wait_for(self._icmp_echo(host), self.ping_timeout + 1)
        except PermissionError:
            log.debug("ICMP datagram sockets not permitted, using ping binary")
            return await self._ping_binary(host)
        except asyncio.TimeoutError:
            return False

    async def _icmp_echo(self, host: str) -> bool:
        loop  = asyncio.get_running_loop()
        infos = await loop.getaddrinfo(host, None, family=socket.AF_INET, type=socket.SOCK_DGRAM)
        addr  = infos[0][4][0]

        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_ICMP)
        try:
            sock.setblocking(False)
            sock.sendto(_echo_request(os.getpid() & 0xFFFF, 1), (addr, 0))
            deadline = loop.time() + self.ping_timeout
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    return False
                try:
                    data = await asyncio.wait_for(loop.sock_recv(sock, 2048), remaining)
                except asyncio.TimeoutError:
                    return False
                # Some platforms hand back the IP header too
                if data and data[0] >> 4 == 4:
                    data = data[(data[0] & 0x0F) * 4:]
                if data and data[0] == ICMP_ECHO_REPLY:
                    return True
        finally:
            sock.close()

    async def _ping_binary(self, host: str) -> bool:
        if host.startswith("-"):
            return False
        timeout = int(self.ping_timeout)
        if sys.platform == "win32":
            argv = ["ping", "-n", "1", "-w", str(timeout * 1000), host]
        else:
            argv = ["ping", "-c", "1", "-W", str(timeout), host]

        proc = await asyncio.create_subprocess_exec(
            *argv, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL
        )
        try:
            return await asyncio.wait_for(proc.wait(), timeout + 1) == 0
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            return False
