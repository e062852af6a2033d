"""Saving and loading of fitted pipelines."""

from .saving import load_pipeline, save_pipeline

__all__ = ["load_pipeline", "save_pipeline"]
