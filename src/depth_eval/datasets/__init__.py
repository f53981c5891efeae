"""Custom Kedro Datasets for depth evaluation.

This module provides dataset implementations for:
- Raw sample directories with images and reference depth maps (SampleDirectoryDataset)
- Persisted sample collections with all annotations (SampleCollectionDataset)
"""

import json
import logging
import random
from pathlib import Path
from typing import Any, Dict, List, Optional

import cv2
from kedro.io import AbstractDataset
from kedro.io.core import get_filepath_str

from depth_eval.samples import HeatmapAnnotation, Sample, SampleCollection, normalize_to_uint8

logger = logging.getLogger(__name__)


class SampleDirectoryDataset(AbstractDataset[SampleCollection, None]):
    """Dataset for loading sample directories into a SampleCollection.

    Each sample directory holds one RGB image and one reference depth map,
    e.g. the SUN RGB-D layout:

        data/01_raw/sunrgbd/
            0001/
                image/0001.jpg
                depth_bfx/0001.png

    Example catalog.yml entry:
        raw_samples:
            type: depth_eval.datasets.SampleDirectoryDataset
            filepath: data/01_raw/sunrgbd
            load_args:
                max_samples: 20
                image_glob: "image/*.jpg"
                depth_glob: "depth_bfx/*.png"
                gt_field: gt_depth
    """

    def __init__(
        self,
        filepath: str,
        load_args: Optional[Dict[str, Any]] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        """Initialize SampleDirectoryDataset.

        Args:
            filepath: Directory containing one subdirectory per sample.
            load_args: Arguments for loading:
                - max_samples: Number of sample directories to load (default 20)
                - image_glob: Glob for the image inside a sample directory
                - depth_glob: Glob for the reference depth map
                - gt_field: Annotation name for the reference map
                - seed: Shuffle directories with this seed before selecting
                - name: Collection name
            metadata: Optional metadata dictionary.
        """
        self._filepath = Path(filepath)
        self._load_args = load_args or {}
        self._metadata = metadata or {}

    def _sample_dirs(self) -> List[Path]:
        root = Path(get_filepath_str(self._filepath, "file"))
        if not root.is_dir():
            raise FileNotFoundError(f"Sample root is not a directory: {root}")

        dirs = sorted(p for p in root.iterdir() if p.is_dir())

        seed = self._load_args.get("seed")
        if seed is not None:
            random.Random(seed).shuffle(dirs)

        max_samples = self._load_args.get("max_samples", 20)
        if max_samples is not None:
            dirs = dirs[:max_samples]
        return dirs

    def load(self) -> SampleCollection:
        """Load sample directories.

        Returns:
            SampleCollection with one reference annotation per sample.
        """
        image_glob = self._load_args.get("image_glob", "image/*.jpg")
        depth_glob = self._load_args.get("depth_glob", "depth_bfx/*.png")
        gt_field = self._load_args.get("gt_field", "gt_depth")
        name = self._load_args.get("name", self._filepath.name)

        collection = SampleCollection(name)

        for sample_dir in self._sample_dirs():
            image_paths = sorted(sample_dir.glob(image_glob))
            depth_paths = sorted(sample_dir.glob(depth_glob))
            if not image_paths:
                raise FileNotFoundError(f"No image matching {image_glob!r} in {sample_dir}")
            if not depth_paths:
                raise FileNotFoundError(f"No depth map matching {depth_glob!r} in {sample_dir}")

            image_path = image_paths[0]
            image = cv2.imread(str(image_path))
            if image is None:
                raise ValueError(f"Failed to read image: {image_path}")
            height, width = image.shape[:2]

            depth = cv2.imread(str(depth_paths[0]), cv2.IMREAD_UNCHANGED)
            if depth is None:
                raise ValueError(f"Failed to read depth map: {depth_paths[0]}")
            if depth.ndim == 3:
                depth = depth[..., 0]
            if depth.shape != (height, width):
                raise ValueError(
                    f"Depth map {depth_paths[0]} has shape {depth.shape}, "
                    f"expected {(height, width)}"
                )

            sample = Sample(
                id=sample_dir.name,
                filepath=str(image_path),
                annotations={gt_field: HeatmapAnnotation(map=normalize_to_uint8(depth))},
                metadata={"height": height, "width": width},
            )
            collection.add(sample)

        logger.info(f"Loaded {len(collection)} samples from {self._filepath}")
        return collection

    def save(self, data: SampleCollection) -> None:
        """Save is not supported - use SampleCollectionDataset instead."""
        raise NotImplementedError(
            "SampleDirectoryDataset is read-only. Use SampleCollectionDataset instead."
        )

    def _describe(self) -> Dict[str, Any]:
        return {"filepath": str(self._filepath), "load_args": self._load_args}

    def _exists(self) -> bool:
        return self._filepath.is_dir()


class SampleCollectionDataset(AbstractDataset[SampleCollection, SampleCollection]):
    """Dataset for persisting a SampleCollection with its annotations.

    Layout on disk:

        <filepath>/
            manifest.json
            maps/<sample_id>/<field>.png

    Example catalog.yml entry:
        depth_predictions:
            type: depth_eval.datasets.SampleCollectionDataset
            filepath: data/07_model_output/depth_predictions
    """

    MANIFEST = "manifest.json"

    def __init__(
        self,
        filepath: str,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        self._filepath = Path(filepath)
        self._metadata = metadata or {}

    def load(self) -> SampleCollection:
        root = Path(get_filepath_str(self._filepath, "file"))
        manifest_path = root / self.MANIFEST

        with open(manifest_path) as f:
            manifest = json.load(f)

        collection = SampleCollection(manifest["name"])
        for entry in manifest["samples"]:
            annotations = {}
            for field_name, info in entry["annotations"].items():
                heatmap = cv2.imread(str(root / info["map"]), cv2.IMREAD_GRAYSCALE)
                if heatmap is None:
                    raise FileNotFoundError(f"Missing map for {entry['id']}/{field_name}")
                annotations[field_name] = HeatmapAnnotation(
                    map=heatmap, metrics=dict(info.get("metrics", {}))
                )
            collection.add(
                Sample(
                    id=entry["id"],
                    filepath=entry["filepath"],
                    annotations=annotations,
                    metadata=entry.get("metadata", {}),
                )
            )
        collection.register_fields(manifest.get("fields", []))

        logger.info(f"Loaded collection '{collection.name}' ({len(collection)} samples)")
        return collection

    def save(self, data: SampleCollection) -> None:
        root = Path(get_filepath_str(self._filepath, "file"))
        root.mkdir(parents=True, exist_ok=True)

        entries = []
        for sample in data:
            sample_dir = root / "maps" / sample.id
            sample_dir.mkdir(parents=True, exist_ok=True)

            annotations = {}
            for field_name, annotation in sample.annotations.items():
                rel_path = Path("maps") / sample.id / f"{field_name}.png"
                cv2.imwrite(str(root / rel_path), annotation.map)
                annotations[field_name] = {
                    "map": rel_path.as_posix(),
                    "metrics": {k: float(v) for k, v in annotation.metrics.items()},
                }

            entries.append(
                {
                    "id": sample.id,
                    "filepath": sample.filepath,
                    "metadata": sample.metadata,
                    "annotations": annotations,
                }
            )

        manifest = {"name": data.name, "fields": data.field_names(), "samples": entries}
        with open(root / self.MANIFEST, "w") as f:
            json.dump(manifest, f, indent=2)

        logger.info(f"Saved collection '{data.name}' ({len(data)} samples) to {root}")

    def _describe(self) -> Dict[str, Any]:
        return {"filepath": str(self._filepath)}

    def _exists(self) -> bool:
        return (self._filepath / self.MANIFEST).exists()
