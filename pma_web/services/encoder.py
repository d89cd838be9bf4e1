from __future__ import annotations

import asyncio
import base64
from pathlib import Path

from pma_web.domain.errors import IOFailure
from pma_web.domain.models import EncodedPart, MediaAsset


def _read_bytes(asset: MediaAsset) -> bytes:
    if isinstance(asset.source, Path):
        return asset.source.read_bytes()
    # rewind so a kept asset can be resubmitted
    asset.source.seek(0)
    return asset.source.read()


async def encode_asset(asset: MediaAsset, *, label: str = "") -> EncodedPart:
    """
    Reads the asset off the event loop and returns its base64 form.
    Size and type are passed through unfiltered.
    """
    try:
        raw = await asyncio.to_thread(_read_bytes, asset)
    except (OSError, ValueError) as e:
        raise IOFailure(asset=label or asset.filename) from e

    return EncodedPart(
        data=base64.b64encode(raw).decode("ascii"),
        media_type=asset.media_type,
    )
