"""Realtime components of the Agora chat backend."""
