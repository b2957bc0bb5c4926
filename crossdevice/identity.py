"""Stable per-host device identifier."""

import hashlib
import socket
import sys


def device_id() -> str:
    """Return an 8-character hex id derived from hostname and platform.

    The same host always yields the same id, so project writes can be
    traced back to the device that made them across restarts.
    """
    fingerprint = f"{socket.gethostname()}-{sys.platform}"
    return hashlib.md5(fingerprint.encode("utf-8")).hexdigest()[:8]
