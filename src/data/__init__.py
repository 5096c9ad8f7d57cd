"""Data processing and visualization utilities.

This package provides pure Python functions for expression data, including:
- Discovery of per-sample input files and sample annotation tables
- Filtering and ranking of differential expression results
- Visualization of expression data with plotly
"""
