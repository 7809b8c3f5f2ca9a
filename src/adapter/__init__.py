"""Adapter layer — backend selection, fallback and field mapping."""

from blogstore.adapter.service import Backend, BackendInfo, PostAdapter

__all__ = ["Backend", "BackendInfo", "PostAdapter"]
