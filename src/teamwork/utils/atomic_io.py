"""
Atomic JSON file operations.

Every write goes to a uniquely named sibling temp file which is flushed,
fsynced and then moved into place with a single atomic filesystem call, so
readers never observe a partially written document.
"""

import json
import os
import uuid
from pathlib import Path
from typing import Any, Union

PathLike = Union[str, Path]

TEMP_MARKER = ".tmp."


def _temp_path(file_path: Path) -> Path:
    return file_path.with_name(f"{file_path.name}{TEMP_MARKER}{uuid.uuid4().hex}")


def _write_temp(file_path: Path, data: Any) -> Path:
    temp_file = _temp_path(file_path)
    with open(temp_file, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
        f.write("\n")
        f.flush()
        os.fsync(f.fileno())
    return temp_file


def atomic_write_json(file_path: PathLike, data: Any) -> None:
    """Write data to a JSON file atomically, replacing any existing file."""
    file_path = Path(file_path)
    temp_file = _write_temp(file_path, data)
    try:
        os.replace(temp_file, file_path)
    finally:
        # Only left behind when the replace itself failed.
        if temp_file.exists():
            temp_file.unlink()


def atomic_create_json(file_path: PathLike, data: Any) -> None:
    """
    Write data to a JSON file atomically, failing if the file already exists.

    The temp file is hard-linked to the target name; link creation fails when
    the target exists, which makes the existence check and the write a single
    atomic step.

    Raises:
        FileExistsError: If file_path already exists
    """
    file_path = Path(file_path)
    temp_file = _write_temp(file_path, data)
    try:
        os.link(temp_file, file_path)
    finally:
        temp_file.unlink()


def read_json_file(file_path: PathLike) -> Any:
    """
    Read and parse a JSON file.

    Raises:
        FileNotFoundError: If the file does not exist
        json.JSONDecodeError: If the file is not valid JSON
    """
    with open(file_path, encoding="utf-8") as f:
        return json.load(f)


def is_temp_file(file_path: PathLike) -> bool:
    """True for in-flight temp files produced by the writers above."""
    return TEMP_MARKER in Path(file_path).name
