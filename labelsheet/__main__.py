"""
Module entry point for: python -m labelsheet

Allows running the composer directly as a module:
    python -m labelsheet pairs <pdf>... [options]
    python -m labelsheet singles <pdf>... [options]
    python -m labelsheet info <pdf_path>
"""

from .cli import cli


def main():
    cli()


if __name__ == "__main__":
    main()
