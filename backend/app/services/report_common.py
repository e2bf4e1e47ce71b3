"""
Report Building Blocks
Shared by the PowerPoint and PDF reports: brand palette, store detail rows,
photo captions and image loading.

Images are read from local storage or fetched over HTTP(S) with httpx,
then normalised with Pillow to RGB JPEG so both renderers accept them.
An image that cannot be loaded comes back as None and is drawn as a
placeholder by the renderers.
"""

import logging
from dataclasses import dataclass
from io import BytesIO
from typing import List, Optional, Tuple

import httpx
from PIL import Image, ImageOps, UnidentifiedImageError

from app.models.store import Store
from app.services.spreadsheets import format_date
from app.services.storage import StorageService


logger = logging.getLogger("reports")

PRIMARY = "EAB308"
BORDER_DARK = "B45309"
LIGHT_BG = "FEF3C7"
PAGE_BG = "FFFEF5"
TEXT_DARK = "1F2937"

REPORT_RECCE = "recce"
REPORT_INSTALLATION = "installation"
REPORT_TYPES = (REPORT_RECCE, REPORT_INSTALLATION)

MAX_IMAGE_SIDE = 1600


def hex_to_rgb(value: str) -> Tuple[int, int, int]:
    return int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16)


@dataclass(frozen=True)
class ReportImage:
    data: bytes  # JPEG
    width: int
    height: int


def normalise_image(raw: bytes) -> Optional[ReportImage]:
    """Decode, apply EXIF rotation, convert to RGB and shrink to MAX_IMAGE_SIDE."""
    try:
        with Image.open(BytesIO(raw)) as img:
            img = ImageOps.exif_transpose(img)
            img = img.convert("RGB")
            img.thumbnail((MAX_IMAGE_SIDE, MAX_IMAGE_SIDE))
            buffer = BytesIO()
            img.save(buffer, format="JPEG", quality=85)
            return ReportImage(buffer.getvalue(), img.width, img.height)
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        logger.warning(f"IMAGE_DECODE_FAILED | error={exc}")
        return None


def fit_box(img_w: float, img_h: float, box_w: float, box_h: float) -> Tuple[float, float, float, float]:
    """Largest (w, h) with the image's aspect inside the box, plus centring offsets."""
    if img_w <= 0 or img_h <= 0:
        return box_w, box_h, 0.0, 0.0
    scale = min(box_w / img_w, box_h / img_h)
    w, h = img_w * scale, img_h * scale
    return w, h, (box_w - w) / 2, (box_h - h) / 2


class ImageLoader:
    """Loads stored photo references for rendering. Use as a context manager."""

    def __init__(self, storage: StorageService, client: Optional[httpx.Client] = None, timeout: float = 15.0):
        self.storage = storage
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=True)
        self._owns_client = client is None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def _fetch(self, url: str) -> Optional[bytes]:
        try:
            response = self._client.get(url)
            response.raise_for_status()
            return response.content
        except httpx.HTTPError as exc:
            logger.warning(f"IMAGE_FETCH_FAILED | url={url} | error={exc}")
            return None

    def load(self, reference: Optional[str]) -> Optional[ReportImage]:
        if not reference:
            return None
        if reference.startswith(("http://", "https://")):
            raw = self._fetch(reference)
        else:
            raw = self.storage.read_local(reference)
        if raw is None:
            return None
        return normalise_image(raw)


def store_details(store: Store) -> List[Tuple[str, str]]:
    """Label/value rows for the store details page."""
    return [
        ("Store Name", store.store_name or ""),
        ("Dealer Code", store.dealer_code),
        ("Store ID", store.store_id or ""),
        ("Client Code", store.client_code or ""),
        ("City", store.city or ""),
        ("District", store.district or ""),
        ("State", store.state or ""),
        ("Address", store.address or ""),
        ("Board Size", store.board_size or ""),
        ("Board Type", store.board_type or ""),
        ("Status", store.current_status.value),
    ]


def recce_details(store: Store) -> List[Tuple[str, str]]:
    return store_details(store) + [
        ("Recce By", store.recce_submitted_by or ""),
        ("Recce Date", format_date(store.recce_submitted_date)),
        ("Notes", store.recce_notes or ""),
    ]


def installation_details(store: Store) -> List[Tuple[str, str]]:
    return store_details(store) + [
        ("Installed By", store.installation_submitted_by or ""),
        ("Installation Date", format_date(store.installation_submitted_date)),
    ]


def measurement_caption(entry: dict) -> str:
    """'10 x 8 ft' for a recce photo entry."""
    width = entry.get("width")
    height = entry.get("height")
    unit = entry.get("unit") or "ft"
    if width is None and height is None:
        return "No measurements"

    def show(value):
        if value is None:
            return "?"
        return f"{value:g}" if isinstance(value, (int, float)) else str(value)

    return f"{show(width)} x {show(height)} {unit}"


def element_lines(entry: dict) -> List[str]:
    lines = []
    for element in entry.get("elements") or []:
        name = element.get("elementName") or "Element"
        quantity = element.get("quantity")
        lines.append(f"{name} x {quantity:g}" if isinstance(quantity, (int, float)) else name)
    return lines


def installation_pairs(store: Store) -> List[Tuple[int, Optional[str], str]]:
    """(recce photo index, recce photo reference, installation photo reference)."""
    recce_photos = store.recce_photos or []
    pairs = []
    for entry in store.installation_photos or []:
        index = entry.get("reccePhotoIndex", 0)
        before = recce_photos[index].get("photo") if 0 <= index < len(recce_photos) else None
        pairs.append((index, before, entry.get("photo")))
    return pairs


def report_filename(store: Store, kind: str, extension: str) -> str:
    code = store.store_id or store.dealer_code
    return f"{kind}_{code}.{extension}".replace(" ", "_")
