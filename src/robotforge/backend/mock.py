"""Mock backends for testing and offline development."""

from __future__ import annotations

import asyncio
import hashlib
import io
import itertools
import json
from typing import TYPE_CHECKING, Any

from PIL import Image, ImageDraw, ImageFont

from robotforge.errors import FetchError
from robotforge.models.robot import ATK_RANGE, DEF_RANGE, HP_RANGE
from robotforge.pipeline.stats import parse_stats

if TYPE_CHECKING:
    from robotforge.models import RobotStats

# Minimal binary glTF header: magic, version 2, total length 12.
FAKE_GLB = b"glTF" + (2).to_bytes(4, "little") + (12).to_bytes(4, "little")


class MockTextBackend:
    """Stats derived from the photo's hash, plus a gradient concept image.

    Useful for running the full pipeline without Gemini credentials.
    """

    def __init__(self, image_size: int = 256) -> None:
        self.image_size = image_size

    async def connect(self) -> None:
        pass

    async def disconnect(self) -> None:
        pass

    async def generate_stats(self, image_b64: str) -> RobotStats:
        await asyncio.sleep(0.01)
        seed = _seed(image_b64)
        payload = {
            "name": f"Mock Unit {seed % 1000:03d}",
            "lore": "Assembled by Oishii Industries from a test photo.",
            "hp": _in_range(seed, HP_RANGE),
            "atk": _in_range(seed >> 4, ATK_RANGE),
            "def": _in_range(seed >> 8, DEF_RANGE),
            "visual_description": "boxy mock robot, full body standing, feet completely visible",
        }
        return parse_stats(json.dumps(payload))

    async def generate_image(self, prompt: str) -> bytes:
        await asyncio.sleep(0.01)
        img = _create_gradient_image(self.image_size, self.image_size, prompt, _seed(prompt))
        buf = io.BytesIO()
        img.save(buf, "PNG")
        return buf.getvalue()


class MockMeshBackend:
    """In-memory 3D service that advances each job on every status check.

    Every job reports ``IN_PROGRESS`` with ``step`` percent more progress per
    poll and then ``SUCCEEDED`` with a payload shaped like the real service.
    """

    def __init__(self, step: int = 50) -> None:
        self.step = max(1, step)
        self._ids = itertools.count(1)
        self._progress: dict[str, int] = {}

    async def connect(self) -> None:
        pass

    async def disconnect(self) -> None:
        pass

    async def is_available(self) -> bool:
        return True

    async def create_task(self, path: str, body: dict[str, Any]) -> str:
        await asyncio.sleep(0)
        handle = f"mock{path.replace('/', '-')}-{next(self._ids)}"
        self._progress[handle] = 0
        return handle

    async def get_task(self, path: str) -> dict[str, Any]:
        await asyncio.sleep(0)
        handle = path.rsplit("/", 1)[-1]
        if handle not in self._progress:
            msg = f"Unknown mock task: {handle}"
            raise FetchError(msg, status_code=404)
        progress = min(100, self._progress[handle] + self.step)
        self._progress[handle] = progress
        if progress < 100:
            return {"id": handle, "status": "IN_PROGRESS", "progress": progress}
        return {"id": handle, "status": "SUCCEEDED", "progress": 100, **_success_payload(handle)}

    async def download(self, url: str) -> bytes:
        await asyncio.sleep(0)
        return FAKE_GLB


def _success_payload(handle: str) -> dict[str, Any]:
    url = f"https://mock.invalid/{handle}.glb"
    if "-animations-" in handle:
        return {"result": {"animation_glb_url": url}}
    if "-image-to-3d-" in handle:
        return {"model_urls": {"glb": url}}
    return {}


def _in_range(seed: int, bounds: tuple[int, int]) -> int:
    low, high = bounds
    return low + seed % (high - low + 1)


def _seed(text: str) -> int:
    """Derive a deterministic seed from a string."""
    return int(hashlib.md5(text.encode()).hexdigest()[:8], 16)  # noqa: S324


def _create_gradient_image(width: int, height: int, prompt: str, seed: int) -> Image.Image:
    """Create a gradient image with prompt text overlay."""
    r1, g1, b1 = (seed >> 16) & 0xFF, (seed >> 8) & 0xFF, seed & 0xFF
    r2, g2, b2 = 255 - r1, 255 - g1, 255 - b1

    img = Image.new("RGB", (width, height))
    draw = ImageDraw.Draw(img)

    for y in range(height):
        t = y / max(height - 1, 1)
        r = int(r1 + (r2 - r1) * t)
        g = int(g1 + (g2 - g1) * t)
        b = int(b1 + (b2 - b1) * t)
        draw.line([(0, y), (width, y)], fill=(r, g, b))

    # Robot silhouette: head, body, legs
    cx = width // 2
    unit = max(height // 10, 1)
    draw.rectangle([cx - unit, unit, cx + unit, 3 * unit], outline=(255, 255, 255), width=2)
    draw.rectangle(
        [cx - 2 * unit, 3 * unit, cx + 2 * unit, 6 * unit], outline=(255, 255, 255), width=2,
    )
    draw.line([(cx - unit, 6 * unit), (cx - unit, 9 * unit)], fill=(255, 255, 255), width=2)
    draw.line([(cx + unit, 6 * unit), (cx + unit, 9 * unit)], fill=(255, 255, 255), width=2)

    try:
        font = ImageFont.truetype("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf", 12)
    except OSError:
        font = ImageFont.load_default()

    draw.text((4, 4), f"[MOCK] {prompt[:40]}", fill=(255, 255, 255), font=font)
    return img
