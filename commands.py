import logging
import shutil
import subprocess
from typing import Iterable, List, Optional, Sequence

logger = logging.getLogger(__name__)

REDACTED = "***"


class DeployError(Exception):
    """
    Base class for every failure that aborts a deployment run.
    """


class CommandError(DeployError):
    """
    An external command could not be started or exited non-zero.
    """

    def __init__(self, command: Sequence[str], error_message: str, returncode: Optional[int] = None, stderr: str = ""):
        self.command = list(command)
        self.error_message = error_message
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip() or (f"exit code {returncode}" if returncode is not None else "")
        super().__init__(f"{error_message}: {detail}" if detail else error_message)


def redact(text: str, secrets: Iterable[str]) -> str:
    """
    Replace every non-empty secret in text with a placeholder.
    """
    for secret in secrets:
        if secret:
            text = text.replace(secret, REDACTED)
    return text


def run_command(command: List[str], error_message: str, cwd: Optional[str] = None,
                secrets: Sequence[str] = (), input_text: Optional[str] = None) -> str:
    """
    Executes a command using subprocess.run and raises on failure.

    Args:
        command (list): The command to run as a list of strings.
        error_message (str): Describes the step that failed, used in logs and the raised error.
        cwd (str): Working directory for the command.
        secrets (list): Values (tokens, credentialed URLs) masked in anything logged or raised.
        input_text (str): Optional text passed on stdin.

    Returns:
        str: The standard output from the command.

    Raises:
        CommandError: If the executable is missing or exits non-zero.
    """
    shown = redact(" ".join(command), secrets)
    logger.debug(f"Running: {shown}" + (f" (in {cwd})" if cwd else ""))
    try:
        result = subprocess.run(command, cwd=cwd, input=input_text, capture_output=True, text=True)
    except FileNotFoundError as e:
        missing = command[0] if command else "unknown"
        logger.debug(f"Missing dependency while running: {shown}: {e}")
        raise CommandError([redact(c, secrets) for c in command], redact(error_message, secrets),
                           stderr=f"'{missing}' not found on PATH") from None
    if result.returncode != 0:
        stderr = redact(result.stderr or "", secrets)
        logger.debug(f"Command failed ({result.returncode}): {shown}")
        raise CommandError([redact(c, secrets) for c in command], redact(error_message, secrets),
                           returncode=result.returncode, stderr=stderr)
    return result.stdout


def check_dependencies(tools: Sequence[str]) -> None:
    """
    Ensure required CLI tools are available on PATH.
    Raises DeployError naming every missing tool.
    """
    missing = [cmd for cmd in tools if shutil.which(cmd) is None]
    if missing:
        raise DeployError(f"Missing required CLI tools: {', '.join(missing)}. Install them and ensure they are on PATH.")
