"""
This module contains the configuration settings for the Factorio supervisor.
It defines paths, launch parameters, logging configuration and which settings
may be changed at runtime through overrides.json.
"""

import os
import pathlib
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv(override=True)

#* --- Core Paths ---
BASE_DIR = pathlib.Path(os.getenv("SUPERVISOR_BASE_DIR", pathlib.Path.cwd())).resolve()
OVERRIDES_JSON_PATH = BASE_DIR / "overrides.json"

#* --- Factorio Install ---
# The install directory contains bin/ and data/; the write directory holds
# saves, mods, script-output and everything else the server writes.
FACTORIO_DIR = pathlib.Path(os.getenv("FACTORIO_DIR", BASE_DIR / "factorio"))
WRITE_DIR = pathlib.Path(os.getenv("FACTORIO_WRITE_DIR", BASE_DIR / "instance"))
FACTORIO_EXECUTABLE = pathlib.Path(os.getenv("FACTORIO_EXECUTABLE", FACTORIO_DIR / "bin" / "x64" / "factorio"))
PROCESS_NAME = "factorio"

#* --- Launch Parameters ---
# A port of 0 means "pick a random port in the dynamic range on every start".
GAME_PORT = int(os.getenv("FACTORIO_GAME_PORT", "0"))
RCON_PORT = int(os.getenv("FACTORIO_RCON_PORT", "0"))
RCON_PASSWORD = os.getenv("FACTORIO_RCON_PASSWORD", "")

#* --- Supervisor Settings ---
GRACEFUL_SHUTDOWN_TIMEOUT = 30 # seconds before force-killing
RCON_PASSWORD_LENGTH = 10
STREAM_CHUNK_SIZE = 4096

#* --- Logging ---
# Grafana Loki (for observability)
LOKI_ENABLED = os.getenv("LOKI_ENABLED", "False").lower() in ('true', '1', 't')
LOKI_URL = os.getenv("LOKI_URL", "http://localhost:3100")
LOKI_ORG_ID = os.getenv("LOKI_ORG_ID", "fake")
LOG_BUFFER_FLUSH_INTERVAL = 10
LOG_BUFFER_SIZE = 200

#* --- Application variables ---
VERBOSE_LOGGING = False

#* --- MODIFIABLE SETTINGS (Changeable through overrides.json) ---
MODIFIABLE_SETTINGS = {
    "GAME_PORT", "RCON_PORT", "RCON_PASSWORD_LENGTH",
    "GRACEFUL_SHUTDOWN_TIMEOUT", "STREAM_CHUNK_SIZE",
    "LOG_BUFFER_FLUSH_INTERVAL", "LOG_BUFFER_SIZE",
}
