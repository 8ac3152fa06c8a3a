import logging
import shlex
import subprocess
from typing import Tuple

from ..errors import CommandFailed

logger = logging.getLogger(__name__)


class CommandExecutor:
    """Execute commands on the host"""

    def run(self, command: str) -> Tuple[int, str]:
        """
        Execute command, stdout and stderr combined

        Returns:
            Tuple of (exit_code, output)
        """
        logger.debug(command)
        try:
            result = subprocess.run(
                shlex.split(command),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
            )
        except OSError as e:
            # Binary missing or not executable, reported like a shell would
            return 127, str(e)
        return result.returncode, result.stdout.decode('utf-8', errors='replace')

    def check(self, command: str) -> str:
        """
        Execute command and return its output

        Raises:
            CommandFailed: If the command exits non-zero
        """
        exit_code, output = self.run(command)
        if exit_code != 0:
            raise CommandFailed(command, output, exit_code)
        return output
