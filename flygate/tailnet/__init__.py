"""Tailnet control-plane API client."""

from flygate.tailnet.client import TailnetClient, TailnetDevice

__all__ = ["TailnetClient", "TailnetDevice"]
