"""Depth Eval.

Monocular depth estimation evaluation pipelines and docs deployment tooling.
"""

__version__ = "0.1.0"
