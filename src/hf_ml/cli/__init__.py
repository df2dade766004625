"""Command-line interface for HF-ML."""
