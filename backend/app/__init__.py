"""Agora backend application."""
