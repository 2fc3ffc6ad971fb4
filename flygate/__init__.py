"""
flygate - Guarded Fly.io operations for LLM agents.

Exposes a fixed, enumerable set of Fly.io operations over MCP. In safe mode
(the default) nothing an agent does can put a workload on the public
internet:

- Every command is built from a static allow-list; port-exposure flags fail
- Deploys always carry --no-public-ips --flycast
- fly.toml is scanned for public-HTTPS shapes before deploying
- Live state is audited after deploying; public IPs are released on sight
- Router infrastructure apps are off-limits to ordinary operations
"""

__version__ = "0.3.0"

__all__ = [
    "__version__",
]
