# pngshrink/files.py
"""
Output file naming.

  associated_filename("/path/to.png", "extra") -> "/path/to_extra.png"
  derived_filename("/path/to.png", "extra")    -> "/path/extra_to.png"
"""
from __future__ import annotations

from pathlib import Path
from typing import Union

PathLike = Union[str, Path]


def associated_filename(src: PathLike, new_leaf: str) -> Path:
    """Sibling file with `_<new_leaf>` appended to the stem, same extension."""
    p = Path(src)
    return p.with_name(f"{p.stem}_{new_leaf}{p.suffix}")


def derived_filename(src: PathLike, new_leaf: str) -> Path:
    """Sibling file with `<new_leaf>_` prefixed to the whole file name."""
    p = Path(src)
    return p.with_name(f"{new_leaf}_{p.name}")


__all__ = ["associated_filename", "derived_filename"]
