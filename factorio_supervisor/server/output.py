import re
import logging
from time import time as now
from dataclasses import dataclass, field
from typing import Optional, Union


# Lines written by Factorio's logger start with seconds since launch,
# lines written by the game itself (chat, joins) with a wall clock date.
SECONDS_RE = re.compile(r"^ *(\d+\.\d+) ")
DATE_RE = re.compile(r"^(\d{4}-\d\d-\d\d \d\d:\d\d:\d\d) ")

# e.g. "Info ServerMultiplayerManager.cpp:808: " or "Script @__level__/control.lua:12: "
LOG_RE = re.compile(r"^(\w+) (\S+:\d+): ")
# e.g. "[JOIN] " or "[CHAT] "
ACTION_RE = re.compile(r"^\[(\w+)\] ")

LEVELS = {
    "Error": logging.ERROR,
    "Warning": logging.WARNING,
    "Verbose": logging.DEBUG,
}


@dataclass(frozen=True)
class ParsedOutput:
    """
    A single line of server output, split into its structural parts.

    Fields that do not apply to the line's shape are None. `received` is the
    time of classification and is ignored when comparing records.
    """
    source: str
    format: str
    type: str
    message: str
    time: Optional[str] = None
    level: Optional[str] = None
    file: Optional[str] = None
    action: Optional[str] = None
    received: float = field(default_factory=now, compare=False)


def parse_output(line: Union[bytes, str], source: str) -> ParsedOutput:
    """
    Classifies one line of Factorio output.

    Never fails: text matching no known shape comes back as a `generic` record
    holding the whole line as its message.

    :param line: The line without its terminator.
    :param source: Tag naming the stream the line came from (e.g. 'stdout').
    :return: The classified record.
    """
    if isinstance(line, bytes):
        line = line.decode("utf-8", errors="replace")

    fields = {}
    match = SECONDS_RE.match(line)
    if match:
        fields.update(format="seconds", time=match.group(1))
    else:
        match = DATE_RE.match(line)
        if match:
            fields.update(format="date", time=match.group(1))
        else:
            fields["format"] = "none"
    if match:
        line = line[match.end():]

    match = LOG_RE.match(line)
    if match:
        fields.update(type="log", level=match.group(1), file=match.group(2))
    else:
        match = ACTION_RE.match(line)
        if match:
            fields.update(type="action", action=match.group(1))
        else:
            fields["type"] = "generic"
    if match:
        line = line[match.end():]

    return ParsedOutput(source=source, message=line, **fields)


def log_level_for(output: ParsedOutput) -> int:
    """Returns the Python logging level a parsed line should be logged at."""
    if output.source == "stderr":
        return logging.ERROR
    return LEVELS.get(output.level, logging.INFO)
