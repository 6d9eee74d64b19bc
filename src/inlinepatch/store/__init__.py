"""Persistent queue of submitted edits."""

from inlinepatch.store.edit_store import (
    EditRecord,
    EditStore,
    RecordNotFound,
    StoreError,
    result_status,
)

__all__ = ["EditRecord", "EditStore", "RecordNotFound", "StoreError", "result_status"]
