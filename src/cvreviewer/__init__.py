"""Asynchronous retrieval-augmented CV and project report evaluation."""

__version__ = "0.1.0"
