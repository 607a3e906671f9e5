"""
Entry point for running meetsite via `python -m meetsite`.
"""

from .cli import run

if __name__ == "__main__":
    run()
