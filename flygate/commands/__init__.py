"""
flygate command construction.

Allow-listed ``fly`` commands with mode-enforced flags.
"""

from flygate.commands.builder import COMMANDS, BLOCKED_FLAGS, Command, CommandExecutor
from flygate.commands.policy import DeployPolicy, Mode

__all__ = ["BLOCKED_FLAGS", "COMMANDS", "Command", "CommandExecutor", "DeployPolicy", "Mode"]
