"""GraphPOS: order board, public catalog and reports for print shops."""

__version__ = "1.0.0"
