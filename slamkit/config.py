"""Parameter files in the YAML layout written by OpenCV's FileStorage."""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
import yaml

logger = logging.getLogger(__name__)

_DTYPES = {
    "u": np.uint8,
    "c": np.int8,
    "w": np.uint16,
    "s": np.int16,
    "i": np.int32,
    "f": np.float32,
    "d": np.float64,
}


class _Loader(yaml.SafeLoader):
    """Safe loader that also understands ``!!opencv-matrix`` nodes."""


def _construct_matrix(loader: yaml.SafeLoader, node: yaml.Node) -> np.ndarray:
    spec = loader.construct_mapping(node, deep=True)
    try:
        rows, cols, data = int(spec["rows"]), int(spec["cols"]), spec["data"]
    except KeyError as exc:
        raise yaml.constructor.ConstructorError(
            None, None, f"opencv-matrix lacks {exc}", node.start_mark
        ) from None
    dtype = _DTYPES.get(str(spec.get("dt", "d")), np.float64)
    return np.asarray(data, dtype=dtype).reshape(rows, cols)


_Loader.add_constructor("tag:yaml.org,2002:opencv-matrix", _construct_matrix)


def _strip_header(text: str) -> str:
    first, sep, rest = text.partition("\n")
    if first.strip().startswith("%YAML:"):
        return rest
    return text


class Config:
    """Named parameters read from a configuration file."""

    def __init__(self, values=None):
        self._values = dict(values or {})

    @classmethod
    def from_file(cls, path) -> "Config":
        """Read a parameter file; raises FileNotFoundError if it does not exist."""
        p = Path(path)
        if not p.is_file():
            logger.error("parameter file %s does not exist.", p)
            raise FileNotFoundError(f"parameter file {p} does not exist.")
        data = yaml.load(_strip_header(p.read_text(encoding="utf-8")), Loader=_Loader)
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError(f"parameter file {p} does not hold a mapping")
        return cls(data)

    def get(self, key):
        """The value stored under ``key``; raises KeyError if absent."""
        try:
            return self._values[key]
        except KeyError:
            raise KeyError(f"no parameter named {key!r}") from None

    def __contains__(self, key) -> bool:
        return key in self._values

    def __repr__(self) -> str:
        return f"Config({sorted(self._values)})"