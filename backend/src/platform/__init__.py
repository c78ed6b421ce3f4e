"""
Platform-level modules shared by the API process and scripts.

- logging_config: log format and credential redaction
"""
