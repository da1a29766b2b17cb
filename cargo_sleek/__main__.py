"""Entry point: python -m cargo_sleek"""

from cargo_sleek.cli import run

run()
