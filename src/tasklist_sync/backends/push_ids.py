# src/tasklist_sync/backends/push_ids.py

from __future__ import annotations

"""
Chronological push keys.

Keys are 20 characters: 8 encode the millisecond timestamp, 12 are random.
Both halves use an alphabet ordered by ASCII value, so lexicographic order of
keys equals creation order. Keys generated in the same millisecond reuse the
random tail incremented by one, which keeps them strictly increasing.
"""

import secrets
import threading
import time

PUSH_CHARS = "-0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ_abcdefghijklmnopqrstuvwxyz"

_TIME_CHARS = 8
_RANDOM_CHARS = 12


class PushIdGenerator:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last_ms = -1
        self._last_rand = [0] * _RANDOM_CHARS

    def next_id(self, now_ms: int | None = None) -> str:
        if now_ms is None:
            now_ms = int(time.time() * 1000)

        with self._lock:
            duplicate = now_ms == self._last_ms
            self._last_ms = now_ms

            if not duplicate:
                self._last_rand = [secrets.randbelow(64) for _ in range(_RANDOM_CHARS)]
            else:
                # Increment the random tail (base 64, with carry).
                i = _RANDOM_CHARS - 1
                while i >= 0 and self._last_rand[i] == 63:
                    self._last_rand[i] = 0
                    i -= 1
                if i >= 0:
                    self._last_rand[i] += 1

            rand = list(self._last_rand)

        ts = now_ms
        time_chars: list[str] = []
        for _ in range(_TIME_CHARS):
            time_chars.append(PUSH_CHARS[ts % 64])
            ts //= 64
        if ts != 0:
            raise ValueError("timestamp does not fit into a push id")

        return "".join(reversed(time_chars)) + "".join(PUSH_CHARS[r] for r in rand)
