"""
Core library shared by the ingest service.

Provides error classification, structured logging and small utilities
with no knowledge of the hub or the sink.
"""
