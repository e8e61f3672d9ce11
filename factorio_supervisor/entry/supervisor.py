"""
This is a minimal entry point script for the supervisor process.

Its sole responsibility is to set a recognisable process title and hand over
to the console, so the supervisor can be found in process listings next to
the Factorio server it manages.
"""
import setproctitle
from factorio_supervisor.main import main


if __name__ == "__main__":
    setproctitle.setproctitle("Factorio Supervisor")
    main()
