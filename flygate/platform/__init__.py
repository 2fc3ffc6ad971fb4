"""
flygate platform layer.

Runs the ``fly`` CLI and validates what it prints.
"""

from flygate.platform.process import ProcessResult, ProcessRunner, decode_json, decode_ndjson

__all__ = ["ProcessResult", "ProcessRunner", "decode_json", "decode_ndjson"]
