"""Utility helpers for bulkinstall."""
