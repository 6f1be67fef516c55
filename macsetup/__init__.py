"""macsetup — declarative desired-state installer for a macOS host."""

__version__ = "0.1.0"
