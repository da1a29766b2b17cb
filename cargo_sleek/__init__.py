"""cargo-sleek: usage tracking, build timing and unused-dependency checks for cargo."""

__version__ = "1.1.0"
