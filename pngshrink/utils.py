# pngshrink/utils.py
from __future__ import annotations

"""
Shared utilities for pngshrink.

Includes duration formatting, work splitting for the thread pool, and tidy logging.
"""

import os
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Iterable, List, Optional, Tuple, TypeVar

import numpy as np

T = TypeVar("T")


#  Time / size formatting


def format_seconds_compact(seconds: float) -> str:
    """Human-friendly seconds: '<ms>ms', '<s>s', or 'Mm Ss'."""
    if seconds < 1.0:
        return f"{seconds * 1000.0:.1f}ms"
    if seconds < 60.0:
        return f"{seconds:.3f}s"
    minutes = int(seconds // 60)
    return f"{minutes}m {seconds - 60 * minutes:.1f}s"


def format_total_duration_compact(seconds: float) -> str:
    """Compact total duration: 'Mm Ss', 'Ss.s', or 'ms'."""
    if seconds >= 60.0:
        minutes = int(seconds // 60)
        rem = int(round(seconds - 60 * minutes))
        return f"{minutes}m {rem}s"
    if seconds >= 1.0:
        return f"{seconds:.1f}s"
    return f"{seconds * 1000.0:.1f}ms"


def format_bytes_compact(size: int) -> str:
    """Byte count as 'N B', 'N.N KiB' or 'N.N MiB'."""
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024.0:.1f} KiB"
    return f"{size / (1024.0 * 1024.0):.1f} MiB"


#  Work splitting / fork-join


def default_workers() -> int:
    """Leave a few cores free for the system; returns a sensible worker count."""
    n = os.cpu_count() or 4
    reserve = 1 if n <= 6 else 2 if n <= 12 else 3 if n <= 18 else 4
    return max(1, n - reserve)


def split_rows_into_parts(height: int, parts: int) -> List[Tuple[int, int]]:
    """Partition range [0, height) into ~parts contiguous [start, end) row spans."""
    parts = max(1, int(parts))
    step = max(1, (height + parts - 1) // parts)
    return [(start, min(start + step, height)) for start in range(0, height, step)]


_POOL_PREFIX = "pngshrink-worker"
_pool: Optional[ThreadPoolExecutor] = None
_pool_lock = threading.Lock()


def shared_pool() -> ThreadPoolExecutor:
    """Process-wide worker pool, created on first use with default_workers() threads."""
    global _pool
    with _pool_lock:
        if _pool is None:
            _pool = ThreadPoolExecutor(
                max_workers=default_workers(), thread_name_prefix=_POOL_PREFIX
            )
        return _pool


def in_pool_worker() -> bool:
    return threading.current_thread().name.startswith(_POOL_PREFIX)


def run_spans(
    fn: Callable[[int, int], T],
    total: int,
    workers: Optional[int],
    min_span: int = 4096,
) -> List[T]:
    """
    Run fn(start, end) over contiguous spans of [0, total) and block until all finish.

    Spans run on the shared pool; at most `workers` spans are created. Small
    inputs (or workers<=1) run inline on the calling thread. Results come back
    in span order.
    """
    if total <= 0:
        return []
    n_workers = default_workers() if workers is None else max(1, int(workers))
    parts = min(n_workers, max(1, total // max(1, min_span)))
    # Pool workers never wait on the pool they run in.
    if parts <= 1 or in_pool_worker():
        return [fn(0, total)]
    spans = split_rows_into_parts(total, parts)
    pool = shared_pool()
    futures = [pool.submit(fn, s, e) for s, e in spans]
    return [f.result() for f in futures]


#  CLI / progress logging


def enable_line_buffered_stdout() -> None:
    """
    Enable line-buffered stdout when supported.
    Helps live progress printing in terminals that expose .reconfigure().
    """
    import sys

    reconfig = getattr(sys.stdout, "reconfigure", None)
    if callable(reconfig):
        try:
            reconfig(line_buffering=True, write_through=True)
        except (ValueError, OSError):
            pass


# Pretty logging


def format_bool_on_off(value: Any) -> str:
    """Pretty boolean: 'on'/'off' for bools; str(value) otherwise."""
    if isinstance(value, bool):
        return "on" if value else "off"
    return str(value)


def format_number_compact(value: Any) -> str:
    """Pretty number: 1_234 style for ints; compact for floats; passthrough otherwise."""
    if isinstance(value, (int, np.integer)) and not isinstance(value, bool):
        return f"{int(value):,}"
    if isinstance(value, (float, np.floating)):
        text = f"{float(value):.3f}".rstrip("0").rstrip(".")
        return text
    return str(value)


def key_value_pairs_to_string(
    pairs: Iterable[Tuple[str, Any]], sep: str = "  ", eq: str = ": "
) -> str:
    """
    Format (name, value) pairs as 'Name: value' blocks separated by sep.
    Uses format_bool_on_off / format_number_compact for readability.
    """
    out: List[str] = []
    for name, value in pairs:
        display = (
            format_bool_on_off(value)
            if isinstance(value, bool)
            else format_number_compact(value)
        )
        out.append(f"{name}{eq}{display}")
    return sep.join(out)


def print_config_line(
    section: str, pairs: Iterable[Tuple[str, Any]], debug: bool
) -> None:
    """
    Emit a single human-readable config line, e.g.:
      [search] Mode: mid  Candidates: 24  Workers: 8
    Routes to debug() when debug=True, else to log().
    """
    line = f"[{section}] {key_value_pairs_to_string(pairs)}"
    (debug_log if debug else log)(line)


def print_banner(title: str) -> None:
    """Section banner."""
    print(f"\n=== {title} ===", flush=True)


def log(message: str) -> None:
    """Plain log line."""
    print(message, flush=True)


def debug_log(message: str) -> None:
    """Debug log line."""
    print(f"[debug] {message}", flush=True)


def warn(message: str) -> None:
    """Warning log line."""
    print(f"[warn] {message}", flush=True)


def error(message: str) -> None:
    """Error log line to stderr."""
    import sys

    print(f"[error] {message}", file=sys.stderr, flush=True)


__all__ = [
    # formatting
    "format_seconds_compact",
    "format_total_duration_compact",
    "format_bytes_compact",
    "format_bool_on_off",
    "format_number_compact",
    # fork-join
    "default_workers",
    "split_rows_into_parts",
    "shared_pool",
    "in_pool_worker",
    "run_spans",
    # logging
    "enable_line_buffered_stdout",
    "key_value_pairs_to_string",
    "print_config_line",
    "print_banner",
    "log",
    "debug_log",
    "warn",
    "error",
]
