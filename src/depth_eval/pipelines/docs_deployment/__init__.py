"""Docs Deployment Pipelines.

This module builds the documentation site and publishes it to a storage
bucket, or cleans up a preview deployment. It performs the same steps as
the reusable workflows in .github/workflows.
"""

from kedro.pipeline import Pipeline, node, pipeline

from .nodes import (
    BuildConfig,
    DeploymentSecrets,
    PublishConfig,
    build_destination,
    build_docs,
    clean_deployment,
    publish_docs,
    resolve_bucket_root,
)

__all__ = [
    "BuildConfig",
    "DeploymentSecrets",
    "PublishConfig",
    "build_destination",
    "build_docs",
    "clean_deployment",
    "publish_docs",
    "resolve_bucket_root",
    "create_publish_pipeline",
    "create_clean_pipeline",
]


def create_publish_pipeline(**kwargs) -> Pipeline:
    """Create the docs build-and-publish pipeline.

    Returns:
        A Kedro Pipeline object for publishing docs.
    """
    return pipeline(
        [
            node(
                func=build_docs,
                inputs="params:docs_deployment.build",
                outputs="docs_build",
                name="build_docs",
                tags=["docs", "build"],
            ),
            node(
                func=publish_docs,
                inputs=["docs_build", "params:docs_deployment.publish"],
                outputs="docs_publish_manifest",
                name="publish_docs",
                tags=["docs", "upload"],
            ),
        ],
        tags=["docs_deployment"],
    )


def create_clean_pipeline(**kwargs) -> Pipeline:
    """Create the preview cleanup pipeline.

    Returns:
        A Kedro Pipeline object for removing a preview deployment.
    """
    return pipeline(
        [
            node(
                func=clean_deployment,
                inputs="params:docs_deployment.clean",
                outputs="docs_clean_summary",
                name="clean_deployment",
                tags=["docs", "cleanup"],
            ),
        ],
        tags=["docs_deployment"],
    )
