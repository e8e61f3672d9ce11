import re
import random
import string
import secrets
import logging
from pathlib import Path
from typing import Optional, Union

from .errors import VersionNotFoundError

log = logging.getLogger(__name__)

VERSION_RE = re.compile(r"^\s*Version: (\d+\.\d+\.\d+)")

#* --- IANA dynamic/private port range ---
DYNAMIC_PORT_MIN = 49152
DYNAMIC_PORT_MAX = 65535

PASSWORD_ALPHABET = string.ascii_letters + string.digits


def get_version(changelog_path: Union[str, Path]) -> str:
    """
    Reads the version of a Factorio install from its changelog.

    The newest entry comes first, so the first version header wins.

    :param changelog_path: Path to Factorio's data/changelog.txt.
    :return: The version string, e.g. '1.1.110'.
    :raises VersionNotFoundError: If no version header is present.
    """
    with Path(changelog_path).open("r", encoding="utf-8", errors="replace") as f:
        for line in f:
            match = VERSION_RE.match(line)
            if match:
                return match.group(1)

    log.error(f"No version header found in '{changelog_path}'")
    raise VersionNotFoundError()


def random_dynamic_port(rng: Optional[random.Random] = None) -> int:
    """
    Picks a port in the IANA dynamic range.

    :param rng: Random source with a `randint` method; defaults to the system CSPRNG.
    :return: A port number between 49152 and 65535 inclusive.
    """
    rng = rng or secrets.SystemRandom()
    return rng.randint(DYNAMIC_PORT_MIN, DYNAMIC_PORT_MAX)


def generate_password(length: int, rng: Optional[random.Random] = None) -> str:
    """
    Generates a throwaway alphanumeric credential.

    :param length: Number of characters.
    :param rng: Random source with a `choice` method; defaults to the system CSPRNG.
    :return: A string of exactly `length` characters from [A-Za-z0-9].
    """
    rng = rng or secrets.SystemRandom()
    return "".join(rng.choice(PASSWORD_ALPHABET) for _ in range(length))
