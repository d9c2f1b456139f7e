"""Utility functions for emul."""

from emul_agent.utils.helpers import (
    HistoryEntry,
    ensure_dir,
    format_history,
    get_data_path,
    split_response,
)

__all__ = ["HistoryEntry", "ensure_dir", "format_history", "get_data_path", "split_response"]
