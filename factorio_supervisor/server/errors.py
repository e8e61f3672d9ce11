class FactorioError(Exception):
    """Base class for errors raised while supervising a Factorio server."""


class VersionNotFoundError(FactorioError):
    """Raised when the changelog holds no recognisable version header."""

    def __init__(self, message: str = "Unable to determine the version of Factorio"):
        super().__init__(message)


class InvalidStateError(FactorioError):
    """Raised when a lifecycle method is called from a state that does not permit it."""

    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Expected state {expected} but state is {actual}")


class ServerExitedError(FactorioError):
    """Raised when the server process exits before it became ready."""

    def __init__(self, returncode: int):
        self.returncode = returncode
        super().__init__(f"Factorio server exited with code {returncode} before it was ready")


#* --- IPC ---
class IpcError(FactorioError):
    """Base class for errors in the IPC-over-stdout side channel."""


class MalformedIpcLineError(IpcError):
    def __init__(self, line: str):
        self.line = line
        super().__init__(f'Malformed IPC line "{line}"')


class UnknownIpcTypeError(IpcError):
    def __init__(self, ipc_type: str):
        self.ipc_type = ipc_type
        super().__init__(f"Unknown IPC type '{ipc_type}'")


class UnknownIpcFileFormatError(IpcError):
    def __init__(self, extension: str):
        self.extension = extension
        super().__init__(f"Unknown IPC file format '{extension}'")


class InvalidIpcFileNameError(IpcError):
    def __init__(self, file_name: str):
        self.file_name = file_name
        super().__init__(f"Invalid IPC file name '{file_name}'")
