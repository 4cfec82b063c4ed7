"""
Opening SQL dumps and TSV files regardless of how Wikimedia compressed them.
"""

import bz2
import gzip
from pathlib import Path
from typing import IO, Union

PathLike = Union[str, Path]


def open_text(path: PathLike, mode: str = "rt") -> IO[str]:
    """Open a plain, gzip or bzip2 file in text mode, chosen by suffix.

    Reads replace undecodable bytes: SQL dumps store titles as raw varbinary.
    """
    path = Path(path)
    if "t" not in mode:
        mode = mode + "t"
    errors = "replace" if mode.startswith("r") else "strict"
    if path.suffix == ".gz":
        return gzip.open(path, mode, encoding="utf-8", errors=errors)
    if path.suffix == ".bz2":
        return bz2.open(path, mode, encoding="utf-8", errors=errors)
    return open(path, mode.replace("t", ""), encoding="utf-8", errors=errors)

