import sys
import signal
import psutil
import logging
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional

if TYPE_CHECKING:
    import asyncio

log = logging.getLogger(__name__)


#* --- Process Creation ---
def get_executable_path(base_path: Path) -> Path:
    """Returns the platform-specific full path for an executable."""
    return base_path.with_suffix(".exe") if sys.platform == "win32" else base_path


def get_creation_kwargs() -> Dict[str, Any]:
    """
    Returns platform-specific keyword arguments for spawning the server.

    The server gets its own session/process group so that a Ctrl-C in the
    supervisor's terminal does not reach it; shutdown is driven by `stop()`.
    """
    if sys.platform == "win32":
        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP | subprocess.CREATE_NO_WINDOW}
    return {"start_new_session": True}


def get_server_args(
    executable: Path,
    mode_args: List[str],
    game_port: int,
    rcon_port: int,
    rcon_password: str,
) -> List[str]:
    """
    Builds the command line for a headless Factorio server.

    :param executable: Path to the Factorio binary (without platform suffix).
    :param mode_args: What to host, e.g. ['--start-server', 'saves/world.zip'].
    :param game_port: UDP port for game traffic.
    :param rcon_port: TCP port for the remote console.
    :param rcon_password: Password for the remote console.
    :return: The full argument list.
    """
    return [
        str(get_executable_path(executable)),
        *mode_args,
        "--port", str(game_port),
        "--rcon-port", str(rcon_port),
        "--rcon-password", rcon_password,
    ]


def send_interrupt(process: "asyncio.subprocess.Process") -> None:
    """Asks the server to save and quit, the way Ctrl-C in its console would."""
    if sys.platform == "win32":
        process.send_signal(signal.CTRL_BREAK_EVENT)
    else:
        process.send_signal(signal.SIGINT)


#* --- Process Status & Termination ---
def get_process_usage(pid: int) -> Optional[Dict[str, Any]]:
    """
    Takes a resource usage snapshot of a process.

    :param pid: The process ID.
    :return: A dict with pid, status, cpu_percent and memory_rss, or None if it is gone.
    """
    try:
        proc = psutil.Process(pid)
        with proc.oneshot():
            return {
                "pid": pid,
                "status": proc.status(),
                "cpu_percent": proc.cpu_percent(interval=None),
                "memory_rss": proc.memory_info().rss,
            }
    except psutil.NoSuchProcess:
        return None


def kill_process_tree(pid: int, timeout: float = 5) -> None:
    """
    Forcefully kills a process and all of its children.

    :param pid: The root process ID.
    :param timeout: Seconds to wait for the processes to disappear.
    """
    try:
        parent = psutil.Process(pid)
    except psutil.NoSuchProcess:
        log.debug(f"Process {pid} no longer exists, nothing to kill.")
        return

    try:
        procs = parent.children(recursive=True)
    except psutil.NoSuchProcess:
        procs = []
    procs.append(parent)

    for proc in procs:
        try:
            log.warning(f"Killing process {proc.name()} (PID {proc.pid}).")
            proc.kill()
        except psutil.NoSuchProcess:
            continue

    _, alive = psutil.wait_procs(procs, timeout=timeout)
    for proc in alive:
        log.error(f"Process {proc.pid} survived kill.")
