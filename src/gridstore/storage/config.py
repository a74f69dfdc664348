"""gridstore configuration loaded from environment variables.

Environment Variables:
    GRIDSTORE_STORE_BASE_DIR: Base directory for the filesystem store
        (default: tempfile.gettempdir() / gridstore_objects)
    GRIDSTORE_DEFAULT_ROOT: Namespace used when a request names none (default: "fs")
    GRIDSTORE_CHUNK_SIZE: Bytes read from a source per chunk (default: 261120)
"""

from __future__ import annotations

import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from gridstore.storage.errors import StorageConfigError

ENV_STORE_BASE_DIR: Final[str] = "GRIDSTORE_STORE_BASE_DIR"
ENV_DEFAULT_ROOT: Final[str] = "GRIDSTORE_DEFAULT_ROOT"
ENV_CHUNK_SIZE: Final[str] = "GRIDSTORE_CHUNK_SIZE"

DEFAULT_ROOT: Final[str] = "fs"
DEFAULT_CHUNK_SIZE: Final[int] = 255 * 1024

_SAFE_ROOT_PATTERN = re.compile(r"^[a-zA-Z0-9_\-]+(\.[a-zA-Z0-9_\-]+)*$")


def is_safe_root(root: str) -> bool:
    """Return True if ``root`` is usable as a namespace name."""
    return bool(root) and bool(_SAFE_ROOT_PATTERN.match(root))


@dataclass(frozen=True)
class GridStoreSettings:
    """Object service configuration (immutable).

    Attributes:
        base_dir: Base directory of the filesystem store.
        default_root: Namespace used when a request does not name one.
        chunk_size: Bytes read from a source stream per chunk.
    """

    base_dir: Path
    default_root: str = DEFAULT_ROOT
    chunk_size: int = DEFAULT_CHUNK_SIZE

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if not is_safe_root(self.default_root):
            raise StorageConfigError(
                f"{ENV_DEFAULT_ROOT} must be a dotted name of letters, digits, "
                f"'_' or '-', got '{self.default_root}'"
            )
        if self.chunk_size <= 0:
            raise StorageConfigError(
                f"{ENV_CHUNK_SIZE} must be a positive integer, got {self.chunk_size}"
            )


def _parse_positive_int(env_var: str, default: int) -> int:
    """Parse a positive integer from an environment variable.

    Raises:
        StorageConfigError: If the value is set but not a positive integer.
    """
    raw = os.environ.get(env_var)
    if raw is None:
        return default

    raw = raw.strip()
    if not raw:
        return default

    try:
        value = int(raw)
    except ValueError as e:
        raise StorageConfigError(f"{env_var} must be a positive integer, got '{raw}'") from e

    if value <= 0:
        raise StorageConfigError(f"{env_var} must be a positive integer, got {value}")

    return value


def default_base_dir() -> Path:
    """Return the filesystem store base directory used when none is configured."""
    return Path(tempfile.gettempdir()) / "gridstore_objects"


def load_settings() -> GridStoreSettings:
    """Load object service settings from environment variables.

    Returns:
        GridStoreSettings with validated values.

    Raises:
        StorageConfigError: If any value is invalid.
    """
    base_dir_raw = os.environ.get(ENV_STORE_BASE_DIR, "").strip()
    base_dir = Path(base_dir_raw) if base_dir_raw else default_base_dir()

    default_root = os.environ.get(ENV_DEFAULT_ROOT, "").strip() or DEFAULT_ROOT
    chunk_size = _parse_positive_int(ENV_CHUNK_SIZE, DEFAULT_CHUNK_SIZE)

    return GridStoreSettings(
        base_dir=base_dir,
        default_root=default_root,
        chunk_size=chunk_size,
    )
