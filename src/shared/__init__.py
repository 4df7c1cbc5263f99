"""Shared constants, logging and diagnostics."""
from shared.diagnostics import (
    log_memory_usage,
    log_request_diagnostics,
    setup_logging,
)

__all__ = [
    'log_memory_usage',
    'log_request_diagnostics',
    'setup_logging',
]
