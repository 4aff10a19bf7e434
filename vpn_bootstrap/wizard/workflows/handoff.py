"""Hand-off to the deployment playbook once the documents are ready."""
import logging
import os
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import Dict, List

from vpn_bootstrap.wizard.domains.models import HandoffError

logger = logging.getLogger(__name__)


class PlaybookHandoff:
    """
    Runs the configured playbook command from the playbook checkout.

    The command runs inside the checkout's virtualenv (`<repo_dir>/.venv`),
    which is where host preparation installs ansible.
    """

    def __init__(self, settings):
        self.command = list(settings.playbook_command)
        self.repo_dir = Path(settings.repo_dir)

    @property
    def venv(self) -> Path:
        return self.repo_dir / ".venv"

    def command_line(self) -> str:
        activate = shlex.quote(str(self.venv / "bin" / "activate"))
        return (
            f"cd {shlex.quote(str(self.repo_dir))} && source {activate} && "
            f"{shlex.join(self.command)}"
        )

    def environment(self) -> Dict[str, str]:
        """The current environment with the checkout's virtualenv activated."""
        env = dict(os.environ)
        env["VIRTUAL_ENV"] = str(self.venv)
        env["PATH"] = os.pathsep.join(
            p for p in (str(self.venv / "bin"), env.get("PATH", "")) if p
        )
        env.pop("PYTHONHOME", None)
        return env

    def resolve_command(self, env: Dict[str, str]) -> List[str]:
        """
        Resolve the executable against the virtualenv-first PATH.

        Raises:
            HandoffError: If the executable cannot be found
        """
        executable = shutil.which(self.command[0], path=env["PATH"])
        if executable is None:
            raise HandoffError(
                f"'{self.command[0]}' not found in {self.venv / 'bin'} or on PATH."
            )
        return [executable, *self.command[1:]]

    def run(self) -> int:
        """
        Run the playbook. It prompts for the vault passphrase itself.

        Returns:
            The playbook's exit code

        Raises:
            HandoffError: If the playbook command cannot be started
        """
        env = self.environment()
        command = self.resolve_command(env)
        logger.info(f"Running playbook: {shlex.join(command)} in {self.repo_dir}")
        try:
            result = subprocess.run(command, cwd=str(self.repo_dir), env=env, check=False)
        except OSError as e:
            raise HandoffError(f"Could not start the playbook: {e}")
        if result.returncode != 0:
            logger.warning(f"Playbook exited with code {result.returncode}")
        return result.returncode
