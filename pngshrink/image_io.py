# pngshrink/image_io.py
from __future__ import annotations

"""
File I/O around the codec, plus diagnostic colour-table dumps.
"""

import math
from pathlib import Path
from typing import Optional, Union

import numpy as np
from PIL import Image

from .codec import decode
from .constants import SWATCH_SIZE, TABLE_LEAF, WRITE_MODE_MAX
from .errors import ImageIOError
from .files import associated_filename
from .raster import Raster, unpremultiply
from .search import SearchResult, search_mode

PathLike = Union[str, Path]


def read_bytes(path: PathLike) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise ImageIOError(f"cannot read {path}: {e.strerror or e}") from e


def write_bytes(path: PathLike, data: bytes) -> Path:
    p = Path(path)
    try:
        p.write_bytes(data)
    except OSError as e:
        raise ImageIOError(f"cannot write {p}: {e.strerror or e}") from e
    return p


def load_raster(path: PathLike) -> Raster:
    """Read and decode a PNG file."""
    return decode(read_bytes(path))


def color_table_image(raster: Raster, swatch: int = SWATCH_SIZE) -> Optional[np.ndarray]:
    """
    RGBA swatch sheet of the raster's palette, or None without a palette.

    Entries fill a ceil(sqrt(N)) square grid in row order. Within a swatch the
    lower-left triangle carries the entry's alpha and the rest is opaque; unused
    grid cells are fully transparent.
    """
    if raster.palette is None or len(raster.palette) == 0:
        return None
    pal = raster.palette_array()
    count = pal.shape[0]
    dim = int(math.ceil(math.sqrt(count)))

    cells = np.zeros((dim * dim, 4), dtype=np.uint8)
    cells[:count] = pal
    valid = np.zeros((dim * dim,), dtype=bool)
    valid[:count] = True

    # (dim, swatch, dim, swatch, 4) -> (dim*swatch, dim*swatch, 4)
    sheet = np.broadcast_to(
        cells.reshape(dim, 1, dim, 1, 4), (dim, swatch, dim, swatch, 4)
    ).copy()
    i = np.arange(swatch)[:, None]
    j = np.arange(swatch)[None, :]
    lower = (i > j)[None, :, None, :]
    entry_alpha = cells[:, 3].reshape(dim, 1, dim, 1)
    fill_alpha = np.where(valid, 255, 0).astype(np.uint8).reshape(dim, 1, dim, 1)
    sheet[..., 3] = np.where(lower, entry_alpha, fill_alpha)
    return sheet.reshape(dim * swatch, dim * swatch, 4)


def dump_color_table(raster: Raster, output: PathLike) -> Optional[Path]:
    """Save the palette swatch sheet as PNG; returns None when there is no palette."""
    sheet = color_table_image(raster)
    if sheet is None:
        return None
    out = Path(output)
    try:
        Image.fromarray(sheet).save(out, format="PNG")
    except OSError as e:
        raise ImageIOError(f"cannot write {out}: {e}") from e
    return out


def dump_image(
    raster: Raster,
    output: PathLike,
    mode: str = WRITE_MODE_MAX,
    workers: Optional[int] = None,
) -> SearchResult:
    """Write raster (unpremultiplied if needed) with the best encoding, plus its table."""
    dump_color_table(raster, associated_filename(output, TABLE_LEAF))
    image = unpremultiply(raster, workers) if raster.premultiplied else raster
    result = search_mode(image, mode, workers=workers)
    write_bytes(output, result.data)
    return result


__all__ = [
    "read_bytes",
    "write_bytes",
    "load_raster",
    "color_table_image",
    "dump_color_table",
    "dump_image",
]
