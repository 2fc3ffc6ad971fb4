"""
flygate guard module.

Protection checks, the pre-flight descriptor scan and the post-deploy audit.
"""

from flygate.guard.audit import AuditResult, DeployAuditor, FlycastAllocation
from flygate.guard.checks import assert_confirmation, assert_not_protected, is_router_app
from flygate.guard.preflight import PreflightResult, load_descriptor, scan

__all__ = [
    "AuditResult",
    "DeployAuditor",
    "FlycastAllocation",
    "PreflightResult",
    "assert_confirmation",
    "assert_not_protected",
    "is_router_app",
    "load_descriptor",
    "scan",
]
