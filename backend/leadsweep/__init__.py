"""LeadSweep: incremental, spend-capped lead collection and enrichment."""

__version__ = "1.0.0"
