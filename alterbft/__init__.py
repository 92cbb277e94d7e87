"""AlterBFT building blocks: bootstrap protocol, Byzantine epoch state machines, configuration, agent helpers and performance statistics."""

__version__ = "0.1.0"