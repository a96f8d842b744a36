from __future__ import annotations

import base64
import io
from functools import lru_cache

import segno


def qr_png_bytes(payload: str, *, scale: int = 6) -> bytes:
    qr = segno.make(payload, error="m")
    buf = io.BytesIO()
    qr.save(buf, kind="png", scale=scale, border=1)
    return buf.getvalue()


@lru_cache(maxsize=256)
def qr_data_uri(payload: str) -> str:
    encoded = base64.b64encode(qr_png_bytes(payload)).decode("ascii")
    return f"data:image/png;base64,{encoded}"
