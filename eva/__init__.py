"""EVA, the AI assistant layer of Prima Facie."""

__version__ = "0.1.0"
