"""Destination store layer.

This package owns the relational schema, set-based merge writes and
the retry policy guarding every store operation.
"""
