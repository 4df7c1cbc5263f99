"""
Logging setup and process resource reporting.

Large tile requests keep many decoded grids and sockets alive; the snapshot
helpers make that visible in the log when a request runs long or fails.
"""

from __future__ import annotations

import logging
import sys
import threading
from typing import TYPE_CHECKING, Any

import psutil

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

_MB = 1024 * 1024


def setup_logging(level: int = logging.INFO, log_file: Path | None = None) -> None:
    """Configure root logging to stdout and, optionally, a log file."""
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(str(log_file), encoding='utf-8'))
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)


def _to_mb(num_bytes: int) -> float:
    return round(num_bytes / _MB, 2)


def get_memory_info() -> dict[str, Any]:
    """Process RSS/VMS and system memory, in MB."""
    try:
        mem = psutil.Process().memory_info()
        vm = psutil.virtual_memory()
    except psutil.Error as e:
        return {'error': f'Failed to get memory info: {e}'}
    return {
        'rss_mb': _to_mb(mem.rss),
        'vms_mb': _to_mb(mem.vms),
        'total_mb': _to_mb(vm.total),
        'available_mb': _to_mb(vm.available),
        'used_percent': vm.percent,
    }


def get_connection_info() -> dict[str, Any]:
    """Open sockets and threads of this process."""
    try:
        proc = psutil.Process()
        sockets = len(proc.net_connections())
        os_threads = proc.num_threads()
    except psutil.Error as e:
        return {'error': f'Failed to get connection info: {e}'}
    return {
        'connections': sockets,
        'os_threads': os_threads,
        'py_threads': threading.active_count(),
    }


def log_memory_usage(context: str = '') -> None:
    mem = get_memory_info()
    where = f' ({context})' if context else ''
    logger.info(
        'Memory%s: rss=%sMB available=%sMB',
        where,
        mem.get('rss_mb', 'N/A'),
        mem.get('available_mb', 'N/A'),
    )


def log_request_diagnostics(operation: str, level: int = logging.WARNING) -> None:
    """One-line resource summary, logged after a failed or timed-out request."""
    mem = get_memory_info()
    conn = get_connection_info()
    logger.log(
        level,
        'Diagnostics [%s]: rss=%sMB vms=%sMB available=%sMB (%s%% used), '
        'connections=%s threads=%s',
        operation,
        mem.get('rss_mb', 'N/A'),
        mem.get('vms_mb', 'N/A'),
        mem.get('available_mb', 'N/A'),
        mem.get('used_percent', 'N/A'),
        conn.get('connections', 'N/A'),
        conn.get('py_threads', 'N/A'),
    )
