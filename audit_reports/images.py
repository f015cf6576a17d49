"""Image downloading, optimisation and local path rewriting."""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import unquote, urlparse

import requests
from filetype import guess
from PIL import Image, ImageOps

from .models import Attachment, DownloadedImage, Record
from .utils import client_folders, client_slug, sanitize_filename

logger = logging.getLogger("audit_reports")

DOWNLOAD_TIMEOUT = 30.0
LOCAL_IMAGE_PREFIX = "assets/img"

IMAGE_FIELDS = (
    "Discovery Phase Screenshots",
    "Decision Phase Screenshots",
    "Conversion Phase Screenshots",
    "Eyequant Screenshot",
    "Eyequant Competitor Screenshot",
)

FIELD_PREFIXES = {
    "Discovery Phase Screenshots": "discovery",
    "Decision Phase Screenshots": "decision",
    "Conversion Phase Screenshots": "conversion",
    "Eyequant Screenshot": "eyequant",
    "Eyequant Competitor Screenshot": "competitor",
}
DEFAULT_PREFIX = "screenshot"


@dataclass(frozen=True)
class ImageProfile:
    """Resize and encode parameters for one class of image."""

    name: str
    max_width: int
    max_height: int
    fit: str = "inside"
    format: str = "jpeg"
    quality: int = 80
    background: Tuple[int, int, int] = (255, 255, 255)


PROFILES: Dict[str, ImageProfile] = {
    "screenshots": ImageProfile("screenshots", 720, 1280, quality=85),
    "eyequant": ImageProfile("eyequant", 640, 1383, quality=90),
    "default": ImageProfile("default", 800, 600, quality=80),
}

FIELD_PROFILES = {
    "Discovery Phase Screenshots": "screenshots",
    "Decision Phase Screenshots": "screenshots",
    "Conversion Phase Screenshots": "screenshots",
    "Eyequant Screenshot": "eyequant",
    "Eyequant Competitor Screenshot": "eyequant",
}

PIL_FORMATS = {"jpeg": "JPEG", "jpg": "JPEG", "png": "PNG", "webp": "WEBP"}


def validate_profile(profile: ImageProfile) -> None:
    """Raise ``ValueError`` if a profile cannot be used for encoding."""
    if profile.fit != "inside":
        raise ValueError(f"Unsupported fit mode: {profile.fit}")
    if profile.format.lower() not in PIL_FORMATS:
        raise ValueError(f"Unsupported output format: {profile.format}")
    if not 1 <= profile.quality <= 100:
        raise ValueError("Quality must be between 1 and 100")
    if profile.max_width < 1 or profile.max_height < 1:
        raise ValueError("Dimensions must be positive numbers")


def profile_for_field(field_name: str) -> ImageProfile:
    """Pick the profile for a field; unknown fields fall back to substring matching."""
    name = FIELD_PROFILES.get(field_name)
    if name is None:
        lowered = field_name.lower()
        if "eyequant" in lowered:
            name = "eyequant"
        elif "screenshot" in lowered or "phase" in lowered:
            name = "screenshots"
        else:
            name = "default"
    return PROFILES[name]


def _filename_from_url(url: str) -> str:
    path = unquote(urlparse(url).path)
    return path.rstrip("/").split("/")[-1]


def parse_attachments(value: Any) -> List[Attachment]:
    """Read a field holding a comma-joined string or a list of attachment dicts."""
    if not value:
        return []
    if isinstance(value, str):
        items: List[Any] = [part.strip() for part in value.split(",")]
    elif isinstance(value, list):
        items = value
    else:
        return []

    attachments: List[Attachment] = []
    for item in items:
        if isinstance(item, dict):
            url = str(item.get("url") or "").strip()
            filename = str(item.get("filename") or "").strip()
        else:
            url = str(item or "").strip()
            filename = ""
        if not url:
            continue
        attachments.append(Attachment(url=url, filename=filename or _filename_from_url(url) or "Screenshot"))
    return attachments


def detect_image_format(data: bytes) -> Optional[str]:
    """Detect image type using filetype; returns lowercase extension."""
    kind = guess(data)
    if kind and kind.mime.startswith("image/"):
        ext = kind.extension.lower()
        if ext == "jpeg":
            return "jpg"
        return ext
    return None


def _flatten(image: Image.Image, background: Tuple[int, int, int]) -> Image.Image:
    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        canvas = Image.new("RGB", rgba.size, background)
        canvas.paste(rgba, mask=rgba.getchannel("A"))
        return canvas
    if image.mode != "RGB":
        return image.convert("RGB")
    return image


def optimize_image(data: bytes, profile: ImageProfile, label: str = "image") -> bytes:
    """Resize within the profile bounds and re-encode; returns the input on failure."""
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.load()
            logger.debug("Optimizing %s with %s settings (%dx%d)", label, profile.name, *image.size)
            resized = ImageOps.contain(image, (profile.max_width, profile.max_height))
            pil_format = PIL_FORMATS[profile.format.lower()]
            save_kwargs: Dict[str, Any] = {"quality": profile.quality}
            if pil_format == "JPEG":
                resized = _flatten(resized, profile.background)
                save_kwargs["optimize"] = True
            buffer = io.BytesIO()
            resized.save(buffer, format=pil_format, **save_kwargs)
    except (OSError, ValueError, KeyError, Image.DecompressionBombError) as exc:
        logger.warning("Failed to optimize %s, keeping original bytes: %s", label, exc)
        return data

    optimized = buffer.getvalue()
    if data:
        logger.debug(
            "Optimized %s: %d KB -> %d KB",
            label,
            len(data) // 1024,
            len(optimized) // 1024,
        )
    return optimized


class ImageDownloader:
    """Downloads attachment images into per-client asset folders."""

    def __init__(
        self,
        output_root: Path,
        session: Optional[requests.Session] = None,
        timeout: float = DOWNLOAD_TIMEOUT,
    ) -> None:
        self.output_root = Path(output_root)
        self.session = session or requests.Session()
        self.timeout = timeout

    def client_images_dir(self, client: str, folder: Optional[str] = None) -> Path:
        return self.output_root / (folder or client_slug(client)) / "assets" / "img"

    @staticmethod
    def descriptive_filename(
        original_filename: str,
        client: str,
        field_name: str,
        index: int = 0,
        audit_number: int = 1,
        data: bytes = b"",
    ) -> str:
        """Stable name such as ``acme-co-discovery-2.png`` for a downloaded image."""
        prefix = FIELD_PREFIXES.get(field_name, DEFAULT_PREFIX)
        name = client_slug(client)
        if audit_number > 1:
            name += f"-audit{audit_number}"
        name += f"-{prefix}"
        if index > 0:
            name += f"-{index + 1}"

        extension = Path(original_filename).suffix.lower()
        if not extension and data:
            detected = detect_image_format(data)
            if detected:
                extension = f".{detected}"
        return name + extension

    def download_image(
        self,
        attachment: Attachment,
        field_name: str,
        client: str,
        record_id: str,
        index: int = 0,
        audit_number: int = 1,
        folder: Optional[str] = None,
    ) -> Optional[DownloadedImage]:
        """Fetch, optimise and store one attachment; ``None`` if it could not be fetched."""
        logger.info("Downloading image %s", attachment.filename)
        try:
            resp = self.session.get(attachment.url, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            logger.warning("Failed to fetch image %s: %s", attachment.url, exc)
            return None

        data = resp.content
        original_filename = sanitize_filename(attachment.filename or _filename_from_url(attachment.url))
        filename = self.descriptive_filename(
            original_filename, client, field_name, index, audit_number, data
        )
        optimized = optimize_image(data, profile_for_field(field_name), filename)

        image_dir = self.client_images_dir(client, folder)
        destination = image_dir / filename
        try:
            image_dir.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(optimized)
        except OSError as exc:
            logger.warning("Failed to write image %s: %s", destination, exc)
            return None

        return DownloadedImage(
            original_url=attachment.url,
            local_path=f"{LOCAL_IMAGE_PREFIX}/{filename}",
            filename=filename,
            field_name=field_name,
            client=client,
            index=index,
            record_id=record_id,
            original_bytes=len(data),
            written_bytes=len(optimized),
        )

    def download_all_images(self, records: List[Record]) -> List[DownloadedImage]:
        """Download every image attachment, one at a time, in record order."""
        downloaded: List[DownloadedImage] = []
        audits_per_client: Dict[str, int] = {}
        folders = client_folders(record.client for record in records)

        for record in records:
            client = record.client
            audits_per_client[client] = audits_per_client.get(client, 0) + 1
            audit_number = audits_per_client[client]

            for field_name in IMAGE_FIELDS:
                for index, attachment in enumerate(parse_attachments(record.get(field_name))):
                    result = self.download_image(
                        attachment,
                        field_name,
                        client,
                        record.id,
                        index,
                        audit_number,
                        folders[client],
                    )
                    if result:
                        downloaded.append(result)

        total_in = sum(image.original_bytes for image in downloaded)
        total_out = sum(image.written_bytes for image in downloaded)
        logger.info("Downloaded %d images to client folders", len(downloaded))
        if total_in:
            logger.info(
                "Total compression: %d%% (%d KB -> %d KB)",
                round((1 - total_out / total_in) * 100),
                total_in // 1024,
                total_out // 1024,
            )
        return downloaded


def update_records_with_local_images(
    records: List[Record],
    downloaded: List[DownloadedImage],
) -> List[Record]:
    """Point image fields at local paths; records without downloads come back unchanged."""
    by_record: Dict[str, Dict[str, List[DownloadedImage]]] = {}
    for image in downloaded:
        by_record.setdefault(image.record_id, {}).setdefault(image.field_name, []).append(image)

    updated: List[Record] = []
    for record in records:
        images_by_field = by_record.get(record.id)
        if not images_by_field:
            updated.append(record)
            continue
        fields = dict(record.fields)
        for field_name, images in images_by_field.items():
            paths = [image.local_path for image in sorted(images, key=lambda img: img.index)]
            fields[field_name] = paths[0] if len(paths) == 1 else ", ".join(paths)
        updated.append(replace(record, fields=fields))
    return updated
