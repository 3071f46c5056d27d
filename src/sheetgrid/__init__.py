"""Grid state engine for typed, editable tabular datasets."""

__version__ = "0.1.0"
