import asyncio
import contextlib
import signal

from pgtablewatch import cli


def main() -> None:
    signal.signal(signal.SIGPIPE, signal.SIG_DFL)
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(cli.main())


if __name__ == "__main__":
    main()
