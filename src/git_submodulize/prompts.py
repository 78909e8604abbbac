"""Interactive prompts read from the controlling terminal."""

import logging
import sys

import click

logger = logging.getLogger(__name__)


class Prompter:
    """
    Asks the operator single-line questions.

    Subclasses implement `ask`; `confirm` is built on top of it.

    """

    def ask(self, question: str, default: str = "") -> str:
        """
        Ask a question and return the stripped answer.

        An empty answer returns `default`.

        """
        raise NotImplementedError

    def confirm(self, question: str, default: bool = True) -> bool:
        """
        Ask a yes/no question.

        An empty answer returns `default`; anything starting with "y" is yes.

        """
        hint = "Y/n" if default else "y/N"
        answer = self.ask(f"{question} [{hint}]")
        if not answer:
            return default
        return answer.lower().startswith("y")


class TerminalPrompter(Prompter):
    """
    Prompts on the controlling terminal device instead of stdin.

    Piping input into the process therefore doesn't answer prompts. When no
    terminal can be opened (e.g., under cron) stdin and stderr are used.

    """

    def __init__(self, tty: str = "/dev/tty"):
        self.tty = tty

    def ask(self, question: str, default: str = "") -> str:
        suffix = f" [{default}]" if default else ""
        line = self._read_line(click.style(f"{question}{suffix}: ", fg="cyan", bold=True))
        logger.debug("%s%s -> %r", question, suffix, line.strip())
        return line.strip() or default

    def _read_line(self, prompt: str) -> str:
        try:
            with open(self.tty, "r+") as terminal:
                terminal.write(prompt)
                terminal.flush()
                line = terminal.readline()
        except OSError:
            logger.debug("No terminal at %s, reading from stdin", self.tty)
            sys.stderr.write(prompt)
            sys.stderr.flush()
            line = sys.stdin.readline()

        if not line:
            # EOF
            raise click.Abort()
        return line
