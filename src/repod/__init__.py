"""repod: flatten a source tree into one ordered text document for an LLM."""

__version__ = "0.4.0"
