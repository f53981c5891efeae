"""Pytest configuration and fixtures for depth evaluation tests."""

import sys
from pathlib import Path

import cv2
import numpy as np
import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))


def write_sample_dirs(root: Path, count: int, height: int = 48, width: int = 64):
    """Create SUN RGB-D style sample directories.

    Each directory gets image/<id>.jpg and depth_bfx/<id>.png (uint16,
    a horizontal gradient scaled per sample).
    """
    rng = np.random.default_rng(0)
    root.mkdir(parents=True, exist_ok=True)
    for index in range(count):
        sample_id = f"{index:04d}"
        sample_dir = root / sample_id
        (sample_dir / "image").mkdir(parents=True)
        (sample_dir / "depth_bfx").mkdir(parents=True)

        image = rng.integers(0, 255, (height, width, 3), dtype=np.uint8)
        cv2.imwrite(str(sample_dir / "image" / f"{sample_id}.jpg"), image)

        gradient = np.tile(np.linspace(1000, 8000 + index * 100, width), (height, 1))
        cv2.imwrite(str(sample_dir / "depth_bfx" / f"{sample_id}.png"), gradient.astype(np.uint16))
    return root


@pytest.fixture
def sample_root(tmp_path):
    """Directory with 25 sample directories."""
    return write_sample_dirs(tmp_path / "sunrgbd", 25)


@pytest.fixture
def sample_collection(tmp_path):
    """In-memory collection of 5 samples with reference maps and images on disk."""
    from depth_eval.samples import HeatmapAnnotation, Sample, SampleCollection

    rng = np.random.default_rng(1)
    image_dir = tmp_path / "images"
    image_dir.mkdir()

    collection = SampleCollection("test_samples")
    for index in range(5):
        height, width = 40 + index * 4, 56
        image = rng.integers(0, 255, (height, width, 3), dtype=np.uint8)
        path = image_dir / f"{index:04d}.png"
        cv2.imwrite(str(path), image)

        reference = np.tile(np.linspace(0, 255, width), (height, 1)).astype(np.uint8)
        collection.add(
            Sample(
                id=f"{index:04d}",
                filepath=str(path),
                annotations={"gt_depth": HeatmapAnnotation(map=reference)},
                metadata={"height": height, "width": width},
            )
        )
    return collection


@pytest.fixture
def depth_map():
    """Horizontal gradient depth map (farther to the right)."""
    return np.tile(np.linspace(0, 255, 64), (48, 1)).astype(np.uint8)


@pytest.fixture
def memory_fs():
    """Empty fsspec in-memory filesystem."""
    import fsspec

    fs = fsspec.filesystem("memory")
    fs.store.clear()
    fs.pseudo_dirs.clear()
    fs.pseudo_dirs.append("")
    yield fs
    fs.store.clear()
    fs.pseudo_dirs.clear()
    fs.pseudo_dirs.append("")
