import sys
import asyncio
import logging
from typing import List

from factorio_supervisor.config import effective_settings as config
from factorio_supervisor.log.setup import setup_logging
from factorio_supervisor.server import FactorioServer, FactorioError, generate_password, random_dynamic_port

log = logging.getLogger("console")


def create_server() -> FactorioServer:
    """Creates a server from the effective settings."""
    return FactorioServer(config.FACTORIO_DIR, config.WRITE_DIR, config.server_options())


async def run_server(target: str, scenario: bool = False) -> int:
    """
    Runs a server in the foreground until it exits or the task is cancelled.

    :param target: Save file name, or scenario name when `scenario` is True.
    :param scenario: Whether to start a fresh game from a scenario.
    :return: The server's exit code.
    """
    server = create_server()
    await server.init()
    exited = server.wait_for("exit")

    if scenario:
        await server.start_scenario(target)
    else:
        await server.start(target)
    log.info(
        f"Factorio {server.version} running on port {server.game_port} "
        f"(RCON port {server.rcon_port}, PID {server.pid})"
    )

    try:
        (returncode,) = await exited
    except asyncio.CancelledError:
        if server.state == "running":
            log.info("Stopping server...")
            await server.stop()
        raise
    return returncode


def _print_version() -> None:
    server = create_server()
    asyncio.run(server.init())
    print(f"Factorio {server.version} at '{server.factorio_dir}'")


def _print_password(args: List[str]) -> None:
    length = int(args[0]) if args else config.RCON_PASSWORD_LENGTH
    print(generate_password(length))


def _run(args: List[str], scenario: bool = False) -> None:
    if not args:
        print(f"Usage: {'scenario <name>' if scenario else 'start <save>'}")
        return
    try:
        returncode = asyncio.run(run_server(args[0], scenario=scenario))
        log.info(f"Server exited with code {returncode}.")
    except KeyboardInterrupt:
        log.info("Server stopped.")


def toggle_verbose_logging() -> None:
    """Toggles verbose (DEBUG level) logging for the console handler."""
    config.VERBOSE_LOGGING = not config.VERBOSE_LOGGING
    new_level = logging.DEBUG if config.VERBOSE_LOGGING else logging.INFO

    for handler in logging.getLogger().handlers:
        if isinstance(handler, logging.StreamHandler):
            handler.setLevel(new_level)
            break

    print(f"Verbose console logging is now {'ON' if config.VERBOSE_LOGGING else 'OFF'}.")


def print_help() -> None:
    """Prints the main help text for the console."""
    print("\nAvailable commands:")
    print("  version                - Show the version of the configured Factorio install.")
    print("  port                   - Print a random port from the dynamic range.")
    print("  password [length]      - Print a random alphanumeric password.")
    print("  start <save>           - Host a save from the write directory until Ctrl-C.")
    print("  scenario <name>        - Host a new game from a scenario until Ctrl-C.")
    print("  verbose                - Toggle detailed DEBUG log output in the console.")
    print("  exit                   - Exit the console.")
    print()


def execute_command(command: str, args: List[str]) -> bool:
    """
    Executes a single command from the user.

    :param command: The main command string (e.g., 'start', 'version').
    :param args: A list of arguments for the command.
    :return bool: True if the console should exit, False otherwise.
    """
    log.debug(f"Executing command: {command}, args: {args}")
    command_map = {
        "version": _print_version,
        "port": lambda: print(random_dynamic_port()),
        "password": lambda: _print_password(args),
        "start": lambda: _run(args),
        "scenario": lambda: _run(args, scenario=True),
        "verbose": toggle_verbose_logging,
        "help": print_help,
    }

    if command == "exit":
        return True
    if command not in command_map:
        log.info(f"Unknown command: '{command}'. Type 'help' for a list of commands.")
        return False

    try:
        command_map[command]()
    except (FactorioError, OSError, ValueError) as e:
        log.error(f"Command '{command}' failed: {e}")
    return False


def main() -> None:
    """The main entry point for the console application."""
    setup_logging(logging.INFO)

    # Non-interactive mode for one-off commands
    if len(sys.argv) > 1:
        command, args = sys.argv[1].lower(), sys.argv[2:]
        if "--verbose" in args:
            args.remove("--verbose")
            toggle_verbose_logging()
        execute_command(command, args)
        return

    print("--- Factorio Supervisor Console ---")
    print("Type 'help' for a list of commands.")
    while True:
        try:
            command_line = input("> ").strip().split()
            if not command_line:
                continue
            if execute_command(command_line[0].lower(), command_line[1:]):
                break
        except (KeyboardInterrupt, EOFError):
            log.warning("\nExiting console.")
            break


if __name__ == "__main__":
    main()
