"""Core utilities for the Agora backend."""

from .storage import delete_stored_file, resolve_path, store_attachment, store_profile_image

__all__ = ["store_attachment", "store_profile_image", "delete_stored_file", "resolve_path"]
