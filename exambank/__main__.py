"""
Module entry point for: python -m exambank

Allows running the extractor directly as a module:
    python -m exambank build [options]
    python -m exambank inspect <file>...
    python -m exambank check [bank_json]
"""

from .cli import cli


def main():
    cli()


if __name__ == "__main__":
    main()
