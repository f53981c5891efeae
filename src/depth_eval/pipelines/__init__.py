"""Kedro pipelines for depth evaluation and docs deployment."""
