"""
Hashing utilities for provenance.

Each stage output gets a metadata sidecar with:
  - input file hashes
  - config digest
  - code version (git commit if available)
  - runtime library versions
  - timestamp + run_id
"""

import hashlib
import json
import subprocess
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pak_biodiversity.io_utils import atomic_write_json, read_json
from pak_biodiversity.logging_utils import get_versions
from pak_biodiversity.paths import METADATA_DIR


# =============================================================================
# File Hashing
# =============================================================================

def hash_file(path: Union[str, Path], algorithm: str = "sha256") -> str:
    """
    Compute hash of a file.

    Args:
        path: Path to file
        algorithm: Hash algorithm (default: sha256)

    Returns:
        Hex digest of file hash
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Cannot hash non-existent file: {path}")

    h = hashlib.new(algorithm)

    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            h.update(chunk)

    return h.hexdigest()


def hash_dict(d: Dict[str, Any], algorithm: str = "sha256") -> str:
    """Compute hash of a dictionary via sorted-key JSON serialization."""
    s = json.dumps(d, sort_keys=True, default=str)
    h = hashlib.new(algorithm)
    h.update(s.encode("utf-8"))
    return h.hexdigest()


# =============================================================================
# Git Version Info
# =============================================================================

def _run_git(*args: str) -> Optional[str]:
    try:
        result = subprocess.run(
            ["git", *args],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (subprocess.TimeoutExpired, FileNotFoundError):
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip()


def get_git_info() -> Dict[str, Any]:
    """
    Get git repository information.

    Returns:
        Dictionary with commit hash and dirty flag (None outside a git repo)
    """
    commit = _run_git("rev-parse", "HEAD")
    status = _run_git("status", "--porcelain")
    return {
        "commit": commit,
        "dirty": None if status is None else len(status) > 0,
    }


# =============================================================================
# Metadata Sidecar
# =============================================================================

def create_metadata_sidecar(
    output_path: Union[str, Path],
    inputs: Dict[str, str],
    config: Dict[str, Any],
    run_id: str,
    extra: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Create a metadata sidecar for an output file.

    Args:
        output_path: Path to the output file
        inputs: Dictionary mapping input names to file paths
        config: Configuration used for this run
        run_id: Unique run identifier
        extra: Additional metadata to include

    Returns:
        Metadata dictionary
    """
    input_hashes = {}
    for name, path in inputs.items():
        path = Path(path)
        if path.is_file():
            input_hashes[name] = {"path": str(path), "hash": hash_file(path)}
        else:
            input_hashes[name] = {"path": str(path), "hash": None, "missing": True}

    metadata = {
        "output_file": str(output_path),
        "run_id": run_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "inputs": input_hashes,
        "config_digest": hash_dict(config),
        "config": config,
        "git": get_git_info(),
        "versions": get_versions(),
    }

    if extra:
        metadata["extra"] = extra

    return metadata


def sidecar_path_for(output_path: Union[str, Path], metadata_dir: Optional[Path] = None) -> Path:
    """Sidecar location for an output file: <metadata_dir>/<stem>_metadata.json."""
    if metadata_dir is None:
        metadata_dir = METADATA_DIR
    return Path(metadata_dir) / f"{Path(output_path).stem}_metadata.json"


def write_metadata_sidecar(
    output_path: Union[str, Path],
    inputs: Dict[str, str],
    config: Dict[str, Any],
    run_id: str,
    extra: Optional[Dict[str, Any]] = None,
    metadata_dir: Optional[Path] = None,
) -> Path:
    """
    Write a metadata sidecar file for an output.

    Args:
        output_path: Path to the output file
        inputs: Dictionary mapping input names to file paths
        config: Configuration used
        run_id: Run identifier
        extra: Additional metadata
        metadata_dir: Directory for sidecar files (default: METADATA_DIR)

    Returns:
        Path to the written sidecar file
    """
    metadata = create_metadata_sidecar(output_path, inputs, config, run_id, extra)
    sidecar_path = sidecar_path_for(output_path, metadata_dir)
    atomic_write_json(metadata, sidecar_path)
    return sidecar_path


def read_metadata_sidecar(
    output_path: Union[str, Path],
    metadata_dir: Optional[Path] = None,
) -> Optional[Dict[str, Any]]:
    """Read the metadata sidecar for an output file, or None if absent."""
    sidecar_path = sidecar_path_for(output_path, metadata_dir)
    if sidecar_path.exists():
        return read_json(sidecar_path)
    return None


def append_manifest_entry(manifest_path: Union[str, Path], provenance: Dict[str, Any]) -> None:
    """
    Append a download provenance record to a raw-data manifest.

    Args:
        manifest_path: Path to _manifest.json (created if missing)
        provenance: Record describing the download (source, url, sha256, ...)
    """
    manifest_path = Path(manifest_path)
    if manifest_path.exists():
        manifest = read_json(manifest_path)
    else:
        manifest = {"downloads": []}

    manifest["downloads"].append(provenance)
    manifest["last_updated"] = datetime.now(timezone.utc).isoformat()

    atomic_write_json(manifest, manifest_path)
