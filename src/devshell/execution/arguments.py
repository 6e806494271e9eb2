from typing import Callable, Dict, List, Optional, Sequence, Tuple
from pydantic import BaseModel
from devshell.core.models import ParseOutcome, ParsedInvocation, ParseStatus

HELP_FLAGS = ("-h", "--help")
END_OF_OPTIONS = "--"


class FlagSpec(BaseModel):
    flag: str
    description: str
    takes_value: bool = False
    is_help: bool = False


class FlagTable:
    """
    Fixed table of recognised flags, parsed left to right.

    A help flag stops parsing with a HELP outcome. An unknown flag, or a value
    flag with nothing after it, stops parsing with an ERROR outcome. Everything
    else that does not look like a flag is kept as a positional.
    """

    def __init__(self, specs: Sequence[FlagSpec]):
        self._specs: Dict[str, FlagSpec] = {}
        for spec in specs:
            if spec.flag in self._specs:
                raise ValueError(f"Flag '{spec.flag}' is already defined.")
            self._specs[spec.flag] = spec

    def flag_names(self) -> List[str]:
        return list(self._specs)

    def parse(self, tokens: Sequence[str]) -> ParseOutcome:
        invocation = ParsedInvocation()
        index = 0
        while index < len(tokens):
            token = tokens[index]
            spec = self._specs.get(token)

            if spec is None:
                if token.startswith("-") and token != "-":
                    return ParseOutcome(status=ParseStatus.ERROR, invocation=invocation, message=f"Unknown flag: {token}")
                invocation.positionals.append(token)
                index += 1
                continue

            if spec.is_help:
                invocation.flags[spec.flag] = True
                return ParseOutcome(status=ParseStatus.HELP, invocation=invocation)

            if spec.takes_value:
                if index + 1 >= len(tokens):
                    return ParseOutcome(
                        status=ParseStatus.ERROR,
                        invocation=invocation,
                        message=f"Missing value for flag: {token}",
                    )
                values: List[str] = invocation.values(spec.flag)
                values.append(tokens[index + 1])
                invocation.flags[spec.flag] = values
                index += 2
                continue

            invocation.flags[spec.flag] = True
            index += 1

        return ParseOutcome(status=ParseStatus.RUN, invocation=invocation)

    def usage(self) -> str:
        rows: List[Tuple[str, str]] = []
        for spec in self._specs.values():
            label = f"{spec.flag} <opt>" if spec.takes_value else spec.flag
            rows.append((label, spec.description))

        width = max((len(label) for label, _ in rows), default=0)
        lines = ["", "OPTIONS:", ""]
        lines.extend(f"    {label:<{width}}  {description}" for label, description in rows)
        lines.append("")
        return "\n".join(lines) + "\n"


OptionCallback = Callable[[], Optional[ParseStatus]]


class OptionDef(BaseModel):
    short: str
    long: str
    description: str


class OrderedOptions:
    """
    Options bound to callbacks, processed in the order given.

    A callback that returns a status ends parsing immediately with that status;
    tokens after it, positional or not, are ignored. Non-flag tokens are
    collected as positionals for the caller to process.
    """

    def __init__(self, banner: str, description: str = ""):
        self.banner = banner
        self.description = description
        self._options: List[OptionDef] = []
        self._callbacks: Dict[str, OptionCallback] = {}

    def on(self, short: str, long: str, description: str, callback: OptionCallback) -> None:
        for flag in (short, long):
            if flag in self._callbacks:
                raise ValueError(f"Option '{flag}' is already defined.")
            self._callbacks[flag] = callback
        self._options.append(OptionDef(short=short, long=long, description=description))

    def flag_names(self) -> List[str]:
        return list(self._callbacks)

    def parse(self, tokens: Sequence[str]) -> ParseOutcome:
        invocation = ParsedInvocation()
        options_done = False

        for token in tokens:
            if not options_done and token == END_OF_OPTIONS:
                options_done = True
                continue

            if options_done or not token.startswith("-") or token == "-":
                invocation.positionals.append(token)
                continue

            callback = self._callbacks.get(token)
            if callback is None:
                return ParseOutcome(status=ParseStatus.ERROR, invocation=invocation, message=f"invalid option: {token}")

            invocation.flags[token] = True
            status = callback()
            if status is not None:
                return ParseOutcome(status=status, invocation=invocation)

        return ParseOutcome(status=ParseStatus.RUN, invocation=invocation)

    def help(self) -> str:
        lines = [self.banner]
        if self.description:
            lines.append(self.description)
        lines.append("")

        labels = [f"{option.short}, {option.long}" for option in self._options]
        width = max((len(label) for label in labels), default=0)
        for label, option in zip(labels, self._options):
            lines.append(f"    {label:<{width}}  {option.description}")
        return "\n".join(lines) + "\n"
