"""Console script entrypoint for the ak CLI (``python -m ak_cli``)."""

import sys


def run(argv: list[str] | None = None) -> int:
    from .main import main as cli_main

    return cli_main(argv)


def main() -> int:
    """Console entrypoint used by the ``ak`` script hook."""
    return run(sys.argv[1:])


if __name__ == "__main__":
    raise SystemExit(main())
