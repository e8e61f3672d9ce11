"""
The server package.
Supervises a headless Factorio server process.

This package contains the central FactorioServer class and the helpers it
drives: reassembling lines from the output streams, classifying log lines,
decoding the IPC side channel, and deriving launch parameters.
"""
from .server import FactorioServer
from .errors import (
    FactorioError, InvalidStateError, IpcError, InvalidIpcFileNameError, MalformedIpcLineError,
    ServerExitedError, UnknownIpcFileFormatError, UnknownIpcTypeError, VersionNotFoundError,
)
from .derive import generate_password, get_version, random_dynamic_port
from .lines import LineSplitter
from .output import ParsedOutput, parse_output

__all__ = [
    'FactorioServer', 'LineSplitter', 'ParsedOutput', 'parse_output',
    'generate_password', 'get_version', 'random_dynamic_port',
    'FactorioError', 'InvalidStateError', 'IpcError', 'InvalidIpcFileNameError', 'MalformedIpcLineError',
    'ServerExitedError', 'UnknownIpcFileFormatError', 'UnknownIpcTypeError', 'VersionNotFoundError',
]
