"""
IPC over stdout.

Scripts running inside the server push structured data to the supervisor by
printing specially marked lines to stdout:

    \\f$ipc:<channel>?<type><payload>

The channel may contain `\\xHH` escapes for any byte, including `?`. Type `j`
carries inline JSON, type `f` names a file in the server's script-output
directory which is read, parsed according to its extension, and deleted.
"""
import re
import json
import asyncio
import logging
from pathlib import Path
from dataclasses import dataclass
from typing import Any, Callable, Dict, Tuple, Union

from .errors import InvalidIpcFileNameError, MalformedIpcLineError, UnknownIpcFileFormatError, UnknownIpcTypeError

log = logging.getLogger(__name__)

IPC_MARKER = b"\f$ipc:"
IPC_TYPES = {"j", "f"}
ESCAPE_RE = re.compile(rb"\\x([0-9a-fA-F]{2})")

# File extension (without the dot) -> parser for the file's text.
IPC_FILE_FORMATS: Dict[str, Callable[[str], Any]] = {
    "json": json.loads,
}


@dataclass(frozen=True)
class IpcMessage:
    channel: str
    value: Any


def is_ipc_line(line: bytes) -> bool:
    return line.startswith(IPC_MARKER)


def decode_channel(raw: bytes) -> str:
    """
    Resolves `\\xHH` escapes in a raw channel segment.

    The unescaped bytes are decoded with `surrogateescape` so that channel
    names which are not valid UTF-8 still map to a unique string.

    :param raw: The channel bytes between the marker and the first `?`.
    :return: The channel name.
    """
    unescaped = ESCAPE_RE.sub(lambda match: bytes([int(match.group(1), 16)]), raw)
    return unescaped.decode("utf-8", errors="surrogateescape")


def encode_channel(channel: str) -> bytes:
    """Escapes a channel name for use in an IPC line. Inverse of `decode_channel`."""
    encoded = bytearray()
    for byte in channel.encode("utf-8", errors="surrogateescape"):
        if byte in b"?\\" or not 0x20 <= byte <= 0x7e:
            encoded.extend(b"\\x%02x" % byte)
        else:
            encoded.append(byte)
    return bytes(encoded)


def parse_ipc_line(line: bytes) -> Tuple[str, str, bytes]:
    """
    Splits an IPC line into its channel, type and payload.

    :param line: A full line starting with the IPC marker.
    :return: A tuple of (decoded channel, type character, raw payload).
    :raises MalformedIpcLineError: If the marker or the channel separator is missing.
    :raises UnknownIpcTypeError: If the type is neither 'j' nor 'f'.
    """
    channel_end = line.find(b"?", len(IPC_MARKER))
    if not is_ipc_line(line) or channel_end == -1:
        raise MalformedIpcLineError(line.decode("utf-8", errors="replace"))

    channel = decode_channel(line[len(IPC_MARKER):channel_end])
    ipc_type = line[channel_end + 1:channel_end + 2].decode("utf-8", errors="replace")
    if ipc_type not in IPC_TYPES:
        raise UnknownIpcTypeError(ipc_type)

    return channel, ipc_type, line[channel_end + 2:]


def _file_extension(file_name: str) -> str:
    return file_name.rpartition(".")[2] if "." in file_name else ""


async def read_ipc_file(directory: Union[str, Path], file_name: str) -> Any:
    """
    Loads and then deletes a file handed over through IPC.

    The file belongs to the server until the IPC line naming it arrives; after
    that the supervisor consumes it exactly once.

    :param directory: The script-output directory the file must live in.
    :param file_name: Bare file name taken from the IPC line.
    :return: The parsed file content.
    :raises InvalidIpcFileNameError: If the name contains a path separator.
    :raises UnknownIpcFileFormatError: If the extension has no registered parser.
    """
    if "/" in file_name or "\\" in file_name:
        raise InvalidIpcFileNameError(file_name)

    extension = _file_extension(file_name)
    parser = IPC_FILE_FORMATS.get(extension)
    if parser is None:
        raise UnknownIpcFileFormatError(extension)

    file_path = Path(directory) / file_name
    content = await asyncio.to_thread(file_path.read_text, encoding="utf-8")
    value = parser(content)
    await asyncio.to_thread(file_path.unlink)
    log.debug(f"Consumed IPC file '{file_path}'")
    return value


async def handle_ipc(line: bytes, script_output_dir: Union[str, Path]) -> IpcMessage:
    """
    Decodes one IPC line into the message it carries.

    :param line: A full line starting with the IPC marker.
    :param script_output_dir: Directory holding file-backed payloads.
    :return: The decoded channel and value.
    """
    channel, ipc_type, payload = parse_ipc_line(line)
    if ipc_type == "j":
        value = json.loads(payload.decode("utf-8"))
    else:
        value = await read_ipc_file(script_output_dir, payload.decode("utf-8"))
    return IpcMessage(channel=channel, value=value)
