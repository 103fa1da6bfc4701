"""Main entry point for the jwk_convert CLI when run as a module."""

from .cli import convert


def main() -> None:
    """Main entry point for the CLI when run as a module."""
    convert()


if __name__ == "__main__":
    main()
