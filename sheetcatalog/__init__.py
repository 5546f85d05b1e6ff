"""Spreadsheet-backed product catalog with a cached query layer."""
