"""Source ingestion and load orchestration.

This package reads DWD station files and measurement archives, decodes
them into typed records and drives the batched load into the store.
"""
