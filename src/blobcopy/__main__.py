# src/blobcopy/__main__.py
from blobcopy.cli import cli

if __name__ == "__main__":
    cli()
