"""
Services Layer
Caller-facing operations that wire the business layer to storage and
configuration and return JSON-ready results.
"""
