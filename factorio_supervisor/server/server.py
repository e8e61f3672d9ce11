import re
import random
import asyncio
import logging
import subprocess
from pathlib import Path
from collections import deque
from typing import Any, Deque, Dict, List, Optional, Union

from .derive import generate_password, get_version, random_dynamic_port
from .errors import InvalidStateError, ServerExitedError
from .events import EventEmitter, EventHandler
from .ipc import IpcMessage, handle_ipc, is_ipc_line
from .lines import LineSplitter
from .output import ParsedOutput, log_level_for, parse_output
from .process_utils import get_creation_kwargs, get_server_args, get_process_usage, kill_process_tree, send_interrupt

log = logging.getLogger(__name__)

#* --- Server States ---
STATE_NEW = "new"
STATE_INIT = "init"
STATE_CREATE = "create"
STATE_RUNNING = "running"
STATE_STOPPING = "stopping"

# e.g. "updateTick(123) changing state from(CreatingGame) to(InGame)"
GAME_STATE_RE = re.compile(r"changing state from\((\w+)\) to\((\w+)\)")

DEFAULT_CHUNK_SIZE = 4096
DEFAULT_GRACEFUL_TIMEOUT = 30
DEFAULT_PASSWORD_LENGTH = 10


class FactorioServer:
    """
    Supervises a single headless Factorio server process.

    Owns the lifecycle state machine, reads the server's stdout and stderr,
    turns IPC lines into `ipc-<channel>` events and every other line into an
    `output` event carrying a `ParsedOutput`.

    Events emitted:
      - `output` (ParsedOutput): a classified line of server output.
      - `ipc-<channel>` (value): data pushed by a script over IPC.
      - `game-state` (from, to): the multiplayer state machine moved.
      - `state` (old, new): the supervisor state changed.
      - `error` (exception, line): a line could not be processed.
      - `exit` (returncode): the server process ended.
    """

    def __init__(self, factorio_dir: Union[str, Path], write_dir: Union[str, Path], options: Optional[Dict[str, Any]] = None) -> None:
        """
        :param factorio_dir: The Factorio install, containing `bin/` and `data/`.
        :param write_dir: Where saves, script-output and other server-written files live.
        :param options: Optional overrides: executable_path, game_port, rcon_port,
            rcon_password, rcon_password_length, graceful_timeout, chunk_size,
            process_name and rng (a random.Random used for port/password derivation).
        """
        options = options or {}
        self.factorio_dir = Path(factorio_dir)
        self.write_dir = Path(write_dir)
        self.rng: Optional[random.Random] = options.get("rng")

        self.executable_path = Path(options.get("executable_path") or self.factorio_dir / "bin" / "x64" / "factorio")
        self.game_port: int = options.get("game_port") or random_dynamic_port(self.rng)
        self.rcon_port: int = options.get("rcon_port") or random_dynamic_port(self.rng)
        while self.rcon_port == self.game_port and not options.get("rcon_port"):
            self.rcon_port = random_dynamic_port(self.rng)
        self.rcon_password: str = options.get("rcon_password") or generate_password(
            options.get("rcon_password_length", DEFAULT_PASSWORD_LENGTH), self.rng
        )
        self.graceful_timeout: float = options.get("graceful_timeout", DEFAULT_GRACEFUL_TIMEOUT)
        self.chunk_size: int = options.get("chunk_size", DEFAULT_CHUNK_SIZE)
        # read(0) returns b"" which is indistinguishable from EOF.
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be at least 1, got {self.chunk_size}")
        self.process_name: str = options.get("process_name", "factorio")

        self.events = EventEmitter()
        self.proc_log = logging.getLogger(f"proc.{self.process_name}")

        self._state = STATE_NEW
        self._version: Optional[str] = None
        self._process: Optional[asyncio.subprocess.Process] = None
        self._stream_tasks: List[asyncio.Task] = []
        self._exit_task: Optional[asyncio.Task] = None
        self._ready: Optional[asyncio.Event] = None

    #* --- State ---
    @property
    def state(self) -> str:
        return self._state

    @property
    def version(self) -> str:
        """The Factorio version detected by `init()`."""
        if self._version is None:
            raise InvalidStateError(STATE_INIT, self._state)
        return self._version

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    def _check_state(self, expected: str) -> None:
        if self._state != expected:
            raise InvalidStateError(expected, self._state)

    def _set_state(self, new_state: str) -> None:
        old_state, self._state = self._state, new_state
        log.debug(f"Server state changed from {old_state} to {new_state}")
        self.events.emit("state", old_state, new_state)

    #* --- Paths ---
    def data_path(self, *parts: str) -> Path:
        """Joins `parts` under the install's read-only data directory."""
        return self.factorio_dir.joinpath("data", *parts)

    def write_path(self, *parts: str) -> Path:
        """Joins `parts` under the write directory. Does not touch the filesystem."""
        return self.write_dir.joinpath(*parts)

    #* --- Events ---
    def on(self, event: str, handler: EventHandler) -> None:
        self.events.on(event, handler)

    def off(self, event: str, handler: EventHandler) -> None:
        self.events.off(event, handler)

    def once(self, event: str, handler: EventHandler) -> EventHandler:
        return self.events.once(event, handler)

    def on_ipc(self, channel: str, handler: EventHandler) -> None:
        """Subscribes to values sent over the given IPC channel."""
        self.events.on(f"ipc-{channel}", handler)

    def wait_for(self, event: str) -> "asyncio.Future":
        return self.events.wait_for(event)

    #* --- Lifecycle ---
    async def init(self) -> None:
        """
        Prepares the server for launching by detecting the installed version.

        :raises InvalidStateError: If called more than once.
        :raises VersionNotFoundError: If the changelog has no version header.
        """
        self._check_state(STATE_NEW)
        self._version = await asyncio.to_thread(get_version, self.data_path("changelog.txt"))
        log.info(f"Detected Factorio {self._version} at '{self.factorio_dir}'")
        self._set_state(STATE_INIT)

    async def start(self, save_name: str) -> None:
        """
        Hosts the given save and returns once the game is running.

        :param save_name: File name of a save in `<write_dir>/saves`.
        :raises ServerExitedError: If the server exits before reaching the game.
        """
        await self._launch(["--start-server", str(self.write_path("saves", save_name))])

    async def start_scenario(self, scenario: str) -> None:
        """Hosts a fresh game from the named scenario and returns once it is running."""
        await self._launch(["--start-server-load-scenario", scenario])

    async def _launch(self, mode_args: List[str]) -> None:
        self._check_state(STATE_INIT)
        self._set_state(STATE_CREATE)

        args = get_server_args(self.executable_path, mode_args, self.game_port, self.rcon_port, self.rcon_password)
        shown_args = " ".join("<hidden>" if arg == self.rcon_password else arg for arg in args)
        log.info(f"Starting {self.process_name}: {shown_args}")

        try:
            self.write_dir.mkdir(parents=True, exist_ok=True)
            process = await asyncio.create_subprocess_exec(
                *args,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=str(self.write_dir),
                **get_creation_kwargs(),
            )
        except Exception as e:
            log.critical(f"Failed to start {self.process_name}: {e}", exc_info=True)
            self._set_state(STATE_INIT)
            raise

        self._process = process
        self._ready = asyncio.Event()
        self._stream_tasks = [
            asyncio.create_task(self.feed_stream(process.stdout, "stdout")),
            asyncio.create_task(self.feed_stream(process.stderr, "stderr")),
        ]
        self._exit_task = asyncio.create_task(self._watch_exit(process))
        log.info(f"{self.process_name.capitalize()} started with PID: {process.pid}")

        ready_task = asyncio.create_task(self._ready.wait())
        try:
            done, _ = await asyncio.wait({ready_task, self._exit_task}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            # The server runs in its own session, so nothing else will stop it.
            ready_task.cancel()
            log.warning(f"Start of {self.process_name} was cancelled. Killing PID {process.pid}.")
            await asyncio.to_thread(kill_process_tree, process.pid)
            await self._exit_task
            raise
        if ready_task not in done:
            ready_task.cancel()
            raise ServerExitedError(process.returncode)

    async def _watch_exit(self, process: asyncio.subprocess.Process) -> int:
        returncode = await process.wait()
        # Drain whatever output is still buffered before reporting the exit.
        await asyncio.gather(*self._stream_tasks, return_exceptions=True)
        log.info(f"{self.process_name.capitalize()} (PID {process.pid}) exited with code {returncode}")

        self._process = None
        self._stream_tasks = []
        self._set_state(STATE_INIT)
        self.events.emit("exit", returncode)
        return returncode

    async def stop(self) -> None:
        """
        Asks the running server to save and quit, killing it after `graceful_timeout`.

        :raises InvalidStateError: If the server is not running.
        """
        self._check_state(STATE_RUNNING)
        self._set_state(STATE_STOPPING)
        process, exit_task = self._process, self._exit_task

        try:
            send_interrupt(process)
        except ProcessLookupError:
            log.debug(f"{self.process_name} exited before it could be interrupted.")
        try:
            await asyncio.wait_for(asyncio.shield(exit_task), self.graceful_timeout)
        except asyncio.TimeoutError:
            log.warning(f"{self.process_name} did not stop within {self.graceful_timeout}s. Killing it.")
            await asyncio.to_thread(kill_process_tree, process.pid)
            await exit_task

    async def kill(self) -> None:
        """Kills the server process and its children immediately."""
        if self._process is None:
            raise InvalidStateError(STATE_RUNNING, self._state)
        await asyncio.to_thread(kill_process_tree, self._process.pid)
        await self._exit_task

    def resource_usage(self) -> Optional[Dict[str, Any]]:
        """Returns a psutil snapshot of the server process, or None if none is running."""
        if self._process is None:
            return None
        return get_process_usage(self._process.pid)

    #* --- Output Handling ---
    async def feed_stream(self, reader: asyncio.StreamReader, source: str) -> None:
        """
        Reads an output stream to its end and dispatches every line in order.

        Each chunk's lines are fully handled, including any file reads done for
        IPC, before the next chunk is read.

        :param reader: The stream to consume; only `read(n)` is used.
        :param source: Tag for the stream, 'stdout' or 'stderr'.
        """
        lines: Deque[bytes] = deque()
        splitter = LineSplitter(lines.append)
        while True:
            chunk = await reader.read(self.chunk_size)
            if chunk:
                splitter.feed(chunk)
            else:
                splitter.flush()

            while lines:
                await self._dispatch_line(lines.popleft(), source)

            if not chunk:
                break

    async def _dispatch_line(self, line: bytes, source: str) -> None:
        try:
            await self.handle_line(line, source)
        except Exception as e:
            log.error(f"Failed to handle {source} line {line!r}: {e}", exc_info=True)
            self.events.emit("error", e, line)

    async def handle_line(self, line: bytes, source: str = "stdout") -> None:
        """
        Routes one complete line of output.

        IPC lines on stdout are decoded and emitted on their channel; all other
        lines are classified, logged and emitted as `output`.

        :param line: The line without its terminator.
        :param source: Tag for the stream the line came from.
        """
        if source == "stdout" and is_ipc_line(line):
            await self._handle_ipc(line)
            return

        output = parse_output(line, source)
        self.proc_log.log(log_level_for(output), line.decode("utf-8", errors="replace"))
        self.events.emit("output", output)
        self._check_game_state(output)

    async def _handle_ipc(self, line: bytes) -> IpcMessage:
        message = await handle_ipc(line, self.write_path("script-output"))
        log.debug(f"Received IPC message on channel {message.channel!r}")
        self.events.emit(f"ipc-{message.channel}", message.value)
        return message

    def _check_game_state(self, output: ParsedOutput) -> None:
        match = GAME_STATE_RE.search(output.message)
        if not match:
            return

        from_state, to_state = match.groups()
        self.events.emit("game-state", from_state, to_state)
        if to_state == "InGame" and self._state == STATE_CREATE:
            self._set_state(STATE_RUNNING)
            self._ready.set()
