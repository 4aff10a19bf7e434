"""Terminal prompts used by the wizard."""
import getpass
import sys
from typing import Callable


class Prompter:
    """
    Thin wrapper over input()/getpass() so the wizard can be driven by a
    script in tests. Ctrl+C and end of input propagate to the caller.
    """

    def __init__(
        self,
        input_func: Callable[[str], str] = input,
        secret_func: Callable[[str], str] = getpass.getpass,
        output: Callable[..., None] = print,
    ):
        self._input = input_func
        self._secret = secret_func
        self._output = output

    def ask(self, question: str) -> str:
        return self._input(f"{question}: ").strip()

    def ask_secret(self, question: str) -> str:
        # passwords are taken verbatim, surrounding spaces included
        return self._secret(f"{question}: ")

    def say(self, message: str = "") -> None:
        self._output(message)

    def error(self, message: str) -> None:
        self._output(f"Error: {message}")


def confirm_passphrase(prompter: Prompter, question: str = "New vault passphrase") -> tuple:
    """Ask for a passphrase twice; returns the (passphrase, confirmation) pair unvalidated."""
    first = prompter.ask_secret(question)
    second = prompter.ask_secret(f"Confirm {question[0].lower()}{question[1:]}")
    return first, second


def stdin_is_interactive() -> bool:
    return sys.stdin.isatty()
