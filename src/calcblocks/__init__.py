"""calcblocks -- safe formula engine for interactive lesson tools."""

__version__ = "0.4.0"

from calcblocks.formulas import evaluate_formula as evaluate

__all__ = ["__version__", "evaluate"]
