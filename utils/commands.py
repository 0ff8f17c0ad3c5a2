# =============================================================================
# utils/commands.py - External command execution
# =============================================================================

import logging
import subprocess
from dataclasses import dataclass
from typing import List, Sequence


@dataclass
class CommandResult:
    """Captured outcome of one external command"""
    args: List[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """Runs external tools synchronously and logs every invocation"""

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    def run(self, args: List[str], redact: Sequence[str] = ()) -> CommandResult:
        """Run a command to completion; never times out"""
        shown = ["****" if arg in redact else arg for arg in args]
        self.logger.debug(f"Running: {' '.join(shown)}")
        try:
            completed = subprocess.run(
                args,
                capture_output=True,
                text=True,
                check=False
            )
        except OSError as e:
            self.logger.error(f"Could not execute {args[0]}: {e}")
            return CommandResult(args=list(args), returncode=127, stderr=str(e))

        result = CommandResult(
            args=list(args),
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or ""
        )
        if not result.ok:
            self.logger.debug(f"Exit {result.returncode} from {args[0]}: {result.stderr.strip()}")
        return result
