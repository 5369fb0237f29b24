from __future__ import annotations

from typing import Any

from donfig import Config

# nccopy uses ~5 MB as its default copy buffer
DEFAULT_BUFFER_SIZE = 5000000

config = Config(
    "ncslab",
    defaults=[
        {
            "block": {"buffer_size": DEFAULT_BUFFER_SIZE},
            "coordinates": {"cache": False},
        }
    ],
)


def parse_buffer_size(data: Any) -> int:
    size = int(data)
    if size < 1:
        msg = f"Expected a positive buffer size in bytes, got {data} instead."
        raise ValueError(msg)
    return size
