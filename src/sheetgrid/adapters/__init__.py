"""Spreadsheet file adapters."""
