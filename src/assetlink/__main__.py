"""Entry point for `python -m assetlink`."""

from assetlink.cli.app import app


def main() -> None:
    """Invoke the CLI application."""

    app(prog_name="assetlink")


if __name__ == "__main__":
    main()
