from __future__ import annotations

import json
from pathlib import Path
from typing import Any

ATTACHMENTS_DIRNAME = "attachments"


def ensure_export_dirs(output_dir: Path) -> Path:
    """
    Create the output directory and its attachments/ subdirectory.
    Returns the attachments directory.
    """
    attachments_dir = output_dir / ATTACHMENTS_DIRNAME
    attachments_dir.mkdir(parents=True, exist_ok=True)
    return attachments_dir


def write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")


def read_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))
