"""Docs Deployment Pipeline Nodes.

This module builds the static documentation site and publishes it to a
cloud storage bucket, or removes a preview deployment. It mirrors the
reusable workflows in .github/workflows so the same steps can run outside
GitHub Actions.

Flow:

    publish:  build_docs → publish_docs
              ./build.sh      src_dir/** → {secrets[secret_key]}/{dest_dir}/**

    clean:    clean_deployment
              rm -r {GCP_PREVIEW_DOCS_LOCATION}/{path}

Authentication uses Application Default Credentials. In CI these come from
workload-identity federation (google-github-actions/auth); locally from
`gcloud auth application-default login`. The service account and
identity provider are consumed by the workflow auth step only.

Steps fail fast: a failing build stops before upload, and a failed upload
is not rolled back, so the destination may be partially updated.
"""

import logging
import mimetypes
import os
import shlex
import subprocess
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from fsspec import AbstractFileSystem
from fsspec.core import url_to_fs

logger = logging.getLogger(__name__)

PRODUCTION_KEY = "GCP_DOCS_LOCATION"
PREVIEW_KEY = "GCP_PREVIEW_DOCS_LOCATION"
DEFAULT_BUILD_ENV = {"NODE_OPTIONS": "--max-old-space-size=4096"}


@dataclass
class DeploymentSecrets:
    """Cloud identifiers and bucket locations for docs deployment.

    Attributes:
        project: GCP project id (GCP_DOCS_PROJECT), passed to gcsfs for gs:// targets
        docs_location: Production bucket root (GCP_DOCS_LOCATION)
        preview_docs_location: Preview bucket root (GCP_PREVIEW_DOCS_LOCATION)
    """

    project: Optional[str] = None
    docs_location: Optional[str] = None
    preview_docs_location: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "DeploymentSecrets":
        environ = os.environ if environ is None else environ
        return cls(
            project=environ.get("GCP_DOCS_PROJECT"),
            docs_location=environ.get(PRODUCTION_KEY),
            preview_docs_location=environ.get(PREVIEW_KEY),
        )

    def locations(self) -> Dict[str, Optional[str]]:
        """Selectable bucket roots keyed by secret name."""
        return {
            PRODUCTION_KEY: self.docs_location,
            PREVIEW_KEY: self.preview_docs_location,
        }


@dataclass
class BuildConfig:
    """Configuration for the docs build step.

    Attributes:
        command: Build command (string or argv list)
        cwd: Working directory for the build
        src_dir: Directory the build writes the static site to
        src_ref: Optional git ref checked out before building
        pre_build: Commands run before the build (e.g. dependency installs)
        env: Extra environment variables for the build
    """

    command: Union[str, List[str]] = "./build.sh --venv ./.venv/bin/activate"
    cwd: str = "."
    src_dir: str = "docs/build/html"
    src_ref: Optional[str] = None
    pre_build: List[Union[str, List[str]]] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_BUILD_ENV))

    @classmethod
    def from_params(cls, params: Dict[str, Any]) -> "BuildConfig":
        env = dict(DEFAULT_BUILD_ENV)
        env.update(params.get("env") or {})
        return cls(
            command=params.get("command", cls.command),
            cwd=params.get("cwd", "."),
            src_dir=params.get("src_dir", "docs/build/html"),
            src_ref=params.get("src_ref"),
            pre_build=list(params.get("pre_build") or []),
            env=env,
        )


@dataclass
class PublishConfig:
    """Configuration for uploading the built site.

    Attributes:
        secret_key: Which location secret selects the bucket root
        dest_dir: Sub-path under the bucket root (empty for the root itself)
        protocol: Storage protocol used when the root has none
        fs_args: Extra arguments for the fsspec filesystem (project, token, ...)
    """

    secret_key: str = PREVIEW_KEY
    dest_dir: str = ""
    protocol: str = "gs"
    fs_args: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_params(cls, params: Dict[str, Any]) -> "PublishConfig":
        if not params.get("secret_key"):
            raise ValueError("Publishing requires 'secret_key'")
        return cls(
            secret_key=params["secret_key"],
            dest_dir=params.get("dest_dir") or "",
            protocol=params.get("protocol", "gs"),
            fs_args=dict(params.get("fs_args") or {}),
        )


def resolve_bucket_root(secret_key: str, secrets: DeploymentSecrets) -> str:
    """Map a secret-selector key to its bucket root.

    Raises:
        ValueError: If the key is not a location secret or its value is empty
    """
    locations = secrets.locations()
    if secret_key not in locations:
        raise ValueError(f"Unknown secret key: {secret_key}. Expected one of {list(locations)}")

    root = locations[secret_key]
    if not root:
        raise ValueError(f"Secret {secret_key} is not set")
    return root


def build_destination(root: str, sub_path: str = "", protocol: str = "gs") -> str:
    """Join a bucket root and a sub-path into a storage URL.

    Example:
        build_destination("docs-bucket/site", "/pr-12/") -> "gs://docs-bucket/site/pr-12"
    """
    if "://" in root:
        scheme, _, rest = root.partition("://")
    else:
        scheme, rest = protocol, root

    parts = [part for part in rest.split("/") + sub_path.split("/") if part]
    return f"{scheme}://" + "/".join(parts)


def _resolve_fs(
    url: str,
    fs: Optional[AbstractFileSystem],
    fs_args: Dict[str, Any],
    secrets: DeploymentSecrets,
) -> Tuple[AbstractFileSystem, str]:
    if fs is not None:
        return fs, fs._strip_protocol(url)

    fs_args = dict(fs_args)
    if url.startswith("gs://") and secrets.project:
        fs_args.setdefault("project", secrets.project)
    return url_to_fs(url, **fs_args)


def _run(command: Union[str, List[str]], cwd: str, env: Dict[str, str]) -> None:
    argv = shlex.split(command) if isinstance(command, str) else list(command)
    logger.info(f"Running: {' '.join(argv)}")
    subprocess.run(argv, cwd=cwd, env=env, check=True)


def _current_ref(cwd: str) -> str:
    """Branch name checked out in cwd, or the commit sha when detached."""
    ref = subprocess.run(
        ["git", "rev-parse", "--abbrev-ref", "HEAD"],
        cwd=cwd,
        capture_output=True,
        text=True,
        check=True,
    ).stdout.strip()
    if ref != "HEAD":
        return ref
    return subprocess.run(
        ["git", "rev-parse", "HEAD"], cwd=cwd, capture_output=True, text=True, check=True
    ).stdout.strip()


def build_docs(params: Dict[str, Any]) -> Dict[str, Any]:
    """Build the documentation site.

    When src_ref is set, that ref is checked out in cwd for the build and the
    previously checked-out branch (or commit) is restored afterwards, also
    when the build fails. git refuses the checkout if it would overwrite
    uncommitted changes.

    Args:
        params: Build parameters (see BuildConfig)

    Returns:
        Build summary with 'src_dir', 'num_files' and 'duration_s'

    Raises:
        subprocess.CalledProcessError: If any command exits non-zero
        FileNotFoundError: If the build produced no output directory
    """
    config = BuildConfig.from_params(params)
    env = os.environ.copy()
    env.update(config.env)

    start_time = time.time()

    original_ref = None
    if config.src_ref:
        original_ref = _current_ref(config.cwd)
        _run(["git", "checkout", "--quiet", config.src_ref], config.cwd, env)
    try:
        for command in config.pre_build:
            _run(command, config.cwd, env)
        _run(config.command, config.cwd, env)
    finally:
        if original_ref:
            _run(["git", "checkout", "--quiet", original_ref], config.cwd, env)

    src_dir = Path(config.cwd) / config.src_dir
    if not src_dir.is_dir():
        raise FileNotFoundError(f"Build output directory not found: {src_dir}")

    num_files = sum(1 for path in src_dir.rglob("*") if path.is_file())
    duration = time.time() - start_time

    logger.info(f"Built docs into {src_dir} ({num_files} files) in {duration:.1f}s")
    return {
        "src_dir": str(src_dir),
        "src_ref": config.src_ref,
        "num_files": num_files,
        "duration_s": duration,
    }


def publish_docs(
    build_summary: Dict[str, Any],
    params: Dict[str, Any],
    secrets: Optional[DeploymentSecrets] = None,
    fs: Optional[AbstractFileSystem] = None,
) -> Dict[str, Any]:
    """Upload the built site to `{bucket_root}/{dest_dir}`.

    The contents of src_dir are uploaded, not the directory itself. Existing
    objects at the same keys are overwritten; nothing else at the
    destination is deleted.

    Args:
        build_summary: Output of build_docs (uses 'src_dir')
        params: Publish parameters (see PublishConfig)
        secrets: Deployment secrets; read from the environment if None
        fs: Optional filesystem; resolved from the destination URL if None

    Returns:
        Manifest with 'destination' and uploaded 'files'
    """
    config = PublishConfig.from_params(params)
    secrets = secrets or DeploymentSecrets.from_env()

    src_dir = Path(build_summary["src_dir"])
    if not src_dir.is_dir():
        raise FileNotFoundError(f"Source directory not found: {src_dir}")

    root = resolve_bucket_root(config.secret_key, secrets)
    destination = build_destination(root, config.dest_dir, config.protocol)
    fs, dest_path = _resolve_fs(destination, fs, config.fs_args, secrets)

    logger.info(f"Publishing {src_dir} to {destination}")

    uploaded = []
    for local_path in sorted(src_dir.rglob("*")):
        if not local_path.is_file():
            continue
        relative = local_path.relative_to(src_dir).as_posix()
        remote_path = f"{dest_path.rstrip('/')}/{relative}"
        content_type, _ = mimetypes.guess_type(local_path.name)
        fs.put_file(
            str(local_path),
            remote_path,
            content_type=content_type or "application/octet-stream",
        )
        uploaded.append(relative)

    logger.info(f"Uploaded {len(uploaded)} files to {destination}")
    return {"destination": destination, "files": uploaded}


def clean_deployment(
    params: Dict[str, Any],
    secrets: Optional[DeploymentSecrets] = None,
    fs: Optional[AbstractFileSystem] = None,
) -> Dict[str, Any]:
    """Recursively delete a preview deployment.

    Args:
        params: Clean parameters
            - path: Sub-path under the preview bucket root (required)
            - protocol: Storage protocol when the root has none (default 'gs')
            - fs_args: Extra fsspec filesystem arguments
        secrets: Deployment secrets; read from the environment if None
        fs: Optional filesystem; resolved from the target URL if None

    Returns:
        Summary with the deleted 'target'

    Raises:
        ValueError: If path is empty
        FileNotFoundError: If nothing exists under the target
    """
    path = (params.get("path") or "").strip("/")
    if not path:
        raise ValueError("Refusing to clean the preview bucket root: 'path' is empty")

    secrets = secrets or DeploymentSecrets.from_env()
    root = resolve_bucket_root(PREVIEW_KEY, secrets)
    target = build_destination(root, path, params.get("protocol", "gs"))
    fs, target_path = _resolve_fs(target, fs, params.get("fs_args") or {}, secrets)

    if not fs.exists(target_path):
        raise FileNotFoundError(f"No deployment found at {target}")

    fs.rm(target_path, recursive=True)

    logger.info(f"Removed deployment at {target}")
    return {"target": target}
