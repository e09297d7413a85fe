"""Command-line tools for the posterGraph pipeline.

- ``python -m src.cli.process`` -- run poster images through the pipeline
  (single image or batch, optional cross-model consensus).
"""
