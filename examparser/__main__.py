"""
Module entry point for: python -m examparser

Allows running the parser directly as a module:
    python -m examparser parse <docx_path> [options]
    python -m examparser batch <directory> [options]
    python -m examparser serve [options]
"""

from .cli import cli


def main():
    cli()


if __name__ == "__main__":
    main()
