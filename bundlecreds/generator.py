"""
Credential set generation from a bundle's declared credential requirements.

Silent mode fills every entry with a placeholder value the operator edits
later. Interactive mode asks, per requirement, which kind of source to use and
then for the locator.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from typing import TextIO

from bundlecreds.bundles import CredentialRequirement
from bundlecreds.credentials.models import (
    SOURCE_COMMAND,
    SOURCE_ENV,
    SOURCE_PATH,
    SOURCE_SECRET,
    SOURCE_VALUE,
    CredentialSet,
    CredentialStrategy,
    Source,
)
from bundlecreds.errors import GenerationError

logger = logging.getLogger(__name__)

PLACEHOLDER_VALUE = "TODO"

INVALID_NAME_CHARACTERS = "./\\"

# Prompt label -> (source kind, noun used in the follow-up question)
SOURCE_CHOICES: dict[str, tuple[str, str]] = {
    "specific value": (SOURCE_VALUE, "value"),
    "environment variable": (SOURCE_ENV, "environment variable"),
    "file path": (SOURCE_PATH, "path"),
    "shell command": (SOURCE_COMMAND, "command"),
    "secret": (SOURCE_SECRET, "secret"),
}


@dataclass
class GenerateOptions:
    name: str
    namespace: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    silent: bool = False


class Prompter:
    """Line-based console prompts."""

    def __init__(self, stdin: TextIO | None = None, out: TextIO | None = None):
        self.stdin = stdin or sys.stdin
        self.out = out or sys.stdout

    def _readline(self) -> str:
        line = self.stdin.readline()
        if not line:
            raise EOFError("no input")
        return line.rstrip("\n")

    def ask(self, message: str) -> str:
        self.out.write(f"? {message} ")
        self.out.flush()
        return self._readline().strip()

    def select(self, message: str, options: list[str]) -> str:
        """Pick one option by number or by its exact label."""
        self.out.write(f"? {message}\n")
        for i, opt in enumerate(options, start=1):
            self.out.write(f"  {i}) {opt}\n")
        answer = self.ask(f"Choose 1-{len(options)}:")
        if answer.isdigit() and 1 <= int(answer) <= len(options):
            return options[int(answer) - 1]
        if answer in options:
            return answer
        raise ValueError(f"invalid selection {answer!r}")


def _placeholder(req: CredentialRequirement) -> CredentialStrategy:
    return CredentialStrategy(
        name=req.name, source=Source(key=SOURCE_VALUE, value=PLACEHOLDER_VALUE)
    )


def _ask(req: CredentialRequirement, prompter: Prompter) -> CredentialStrategy:
    if req.description:
        prompter.out.write(f"  {req.name}: {req.description}\n")
    label = prompter.select(
        f'How would you like to set credential "{req.name}"',
        list(SOURCE_CHOICES),
    )
    kind, noun = SOURCE_CHOICES[label]
    value = prompter.ask(f'Enter the {noun} that will be used to set credential "{req.name}"')
    return CredentialStrategy(name=req.name, source=Source(key=kind, value=value))


def generate_credentials(
    opts: GenerateOptions,
    requirements: list[CredentialRequirement],
    prompter: Prompter | None = None,
) -> CredentialSet:
    """Build a credential set covering every requirement, sorted by name."""
    if not opts.name:
        raise GenerationError("credential set name is required")
    if any(c in opts.name for c in INVALID_NAME_CHARACTERS):
        raise GenerationError(
            f"credential set name '{opts.name}' cannot contain the following "
            f"characters: '{INVALID_NAME_CHARACTERS}'"
        )

    cs = CredentialSet(name=opts.name, namespace=opts.namespace, labels=dict(opts.labels))
    ordered = sorted(requirements, key=lambda r: r.name)

    if opts.silent:
        cs.credentials = [_placeholder(req) for req in ordered]
        return cs

    prompter = prompter or Prompter()
    for req in ordered:
        try:
            cs.credentials.append(_ask(req, prompter))
        except (EOFError, KeyboardInterrupt) as e:
            raise GenerationError(f"prompt for credential {req.name} was aborted") from e
        except ValueError as e:
            raise GenerationError(f"credential {req.name}: {e}") from e
    logger.debug("Generated %d credential(s) for %s", len(cs.credentials), cs.name)
    return cs
