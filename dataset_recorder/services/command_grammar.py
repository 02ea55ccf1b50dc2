"""Allowlist grammar for recorded ``pnpm`` invocations.

    invocation   := filtered | recursive | bare
    filtered     := "--filter" SELECTOR (script | install | add | remove)
    recursive    := "-r" script
    bare         := script | install | add | remove
    add          := "add" [DEV_FLAG] PACKAGE+
    remove       := "remove" PACKAGE+
    script       := "lint" | "test" | "build"
    install      := "i" | "install"
    DEV_FLAG     := "-D" | "--save-dev" | "--save-dev=true"

SELECTOR and PACKAGE are non-empty, contain no whitespace and do not start
with "-". "--filter" and "-r" may not appear in the same invocation.

Parsing is total and side-effect free: every argument list yields exactly
one AllowedCommand or raises MalformedGrammar naming the branch that came
closest to matching.
"""

import re
from typing import List, Optional, Sequence

from ..core.errors import MalformedGrammar
from ..models.tooling import (
    AddCommand,
    AllowedCommand,
    InstallCommand,
    RemoveCommand,
    RunCmdArgs,
    ScriptCommand,
)

PROGRAM = "pnpm"
FILTER_FLAG = "--filter"
RECURSIVE_FLAG = "-r"
SCRIPT_WORDS = ("lint", "test", "build")
INSTALL_WORDS = ("i", "install")
DEV_FLAGS = ("-D", "--save-dev", "--save-dev=true")

_WHITESPACE = re.compile(r"\s")
_EXPECTED_COMMAND = "lint, test, build, i, install, add, remove"


def check_plain_token(token: str, label: str, branch: str) -> str:
    """Validate a selector or package token."""
    if not token:
        raise MalformedGrammar(f"{branch}: {label} must not be empty", argument=token)
    if _WHITESPACE.search(token):
        raise MalformedGrammar(f"{branch}: {label} must not contain whitespace", argument=token)
    if token.startswith("-"):
        raise MalformedGrammar(f"{branch}: {label} must not start with '-'", argument=token)
    return token


class _Parser:
    """Recursive-descent parser over a tokenized argument list."""

    def __init__(self, tokens: Sequence[str]):
        self.tokens = list(tokens)
        self.pos = 0

    def peek(self) -> Optional[str]:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return None

    def advance(self) -> str:
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def at_end(self) -> bool:
        return self.pos >= len(self.tokens)

    def parse(self) -> AllowedCommand:
        if not self.tokens:
            raise MalformedGrammar("run_cmd args must not be empty")
        if FILTER_FLAG in self.tokens and RECURSIVE_FLAG in self.tokens:
            raise MalformedGrammar(
                "'--filter' and '-r' are mutually exclusive", argument=RECURSIVE_FLAG
            )

        head = self.peek()
        if head == FILTER_FLAG:
            branch = "filtered"
            command = self.filtered()
        elif head == RECURSIVE_FLAG:
            branch = "recursive"
            command = self.recursive()
        else:
            branch = "bare"
            command = self.command(None, branch)

        if not self.at_end():
            token = self.peek()
            raise MalformedGrammar(f"{branch}: unexpected trailing argument {token!r}", argument=token)
        return command

    def filtered(self) -> AllowedCommand:
        self.advance()
        selector = self.peek()
        if selector is None:
            raise MalformedGrammar("filtered: '--filter' requires a selector")
        check_plain_token(selector, "filter selector", "filtered")
        self.advance()
        return self.command(selector, "filtered")

    def recursive(self) -> AllowedCommand:
        self.advance()
        word = self.peek()
        if word not in SCRIPT_WORDS:
            raise MalformedGrammar(
                "recursive: '-r' must be followed by exactly one of lint, test, build",
                argument=word,
            )
        self.advance()
        return ScriptCommand(kind=word, recursive=True)

    def command(self, selector: Optional[str], branch: str) -> AllowedCommand:
        word = self.peek()
        if word in SCRIPT_WORDS:
            self.advance()
            return ScriptCommand(kind=word, filter=selector)
        if word in INSTALL_WORDS:
            self.advance()
            return InstallCommand(filter=selector)
        if word == "add":
            return self.add(selector, branch)
        if word == "remove":
            return self.remove(selector, branch)
        got = "nothing" if word is None else repr(word)
        raise MalformedGrammar(f"{branch}: expected one of {_EXPECTED_COMMAND}, got {got}", argument=word)

    def add(self, selector: Optional[str], branch: str) -> AddCommand:
        self.advance()
        dev = False
        if self.peek() in DEV_FLAGS:
            self.advance()
            dev = True
        packages = self.packages(f"{branch} add")
        return AddCommand(filter=selector, dev=dev, packages=packages)

    def remove(self, selector: Optional[str], branch: str) -> RemoveCommand:
        self.advance()
        packages = self.packages(f"{branch} remove")
        return RemoveCommand(filter=selector, packages=packages)

    def packages(self, branch: str) -> List[str]:
        packages = []
        while not self.at_end():
            packages.append(check_plain_token(self.advance(), "package name", branch))
        if not packages:
            raise MalformedGrammar(f"{branch}: requires at least 1 package")
        return packages


def parse_allowed_command(args: Sequence[str], program: str = PROGRAM) -> AllowedCommand:
    """Classify an argument list against the allowlist grammar.

    Args:
        args: Arguments following the program name
        program: Program name; only ``pnpm`` is accepted

    Returns:
        The matching AllowedCommand

    Raises:
        MalformedGrammar: If no production matches
    """
    if program != PROGRAM:
        raise MalformedGrammar(f"run_cmd.cmd must be '{PROGRAM}'", argument=program)
    return _Parser(args).parse()


def parse_invocation(invocation: RunCmdArgs) -> AllowedCommand:
    return parse_allowed_command(invocation.args, invocation.cmd)


def canonical_args(command: AllowedCommand) -> List[str]:
    """Render the canonical argument list; re-parsing it yields the same command."""
    args: List[str] = []
    if command.filter is not None:
        args += [FILTER_FLAG, command.filter]
    if isinstance(command, ScriptCommand):
        if command.recursive:
            args.append(RECURSIVE_FLAG)
        args.append(command.kind)
    elif isinstance(command, InstallCommand):
        args.append("install")
    elif isinstance(command, AddCommand):
        args.append("add")
        if command.dev:
            args.append("-D")
        args += command.packages
    elif isinstance(command, RemoveCommand):
        args.append("remove")
        args += command.packages
    else:
        raise TypeError(f"Unknown command type: {type(command).__name__}")
    return args
