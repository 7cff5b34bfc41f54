"""Entry point for running chatlog-grader as a module.

Usage:
    python -m chatlog_grader [command] [options]
"""

from chatlog_grader.cli.main import app

if __name__ == "__main__":
    app()
