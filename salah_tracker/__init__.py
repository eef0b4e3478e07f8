"""Salah Tracker: daily prayer checklist, statistics and devotional content."""
