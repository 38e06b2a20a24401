from pathlib import Path
from typing import Any

import yaml

MANIFEST_FILENAME = "manifest.yaml"


def get_manifest_path(model_dir) -> Path:
    """Returns the path to the manifest.yaml file of a model directory."""
    return Path(model_dir) / MANIFEST_FILENAME


def load_manifest(model_dir) -> dict[str, Any]:
    """Loads a model manifest; missing or unreadable manifests yield {}."""
    manifest_path = get_manifest_path(model_dir)
    if not manifest_path.exists():
        return {}
    raw = manifest_path.read_text(encoding="utf-8").strip()
    if not raw:
        return {}
    try:
        data = yaml.safe_load(raw)
        return data if isinstance(data, dict) else {}
    except yaml.YAMLError:
        return {}


def save_manifest(manifest: dict[str, Any], model_dir) -> None:
    """Saves a model manifest as YAML."""
    manifest_path = get_manifest_path(model_dir)
    manifest_path.parent.mkdir(parents=True, exist_ok=True)
    with manifest_path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(manifest, handle, sort_keys=True, allow_unicode=True)
