"""Gallery card thumbnails.

Images are oriented from their EXIF data, then center-cropped to the 16:9
card shape so every tile in the gallery grid has the same size.
"""
from pathlib import Path
from typing import Optional
import logging

from PIL import Image, ImageOps

logger = logging.getLogger(__name__)

SIZES = {
    'small': (160, 90),
    'medium': (320, 180),
    'large': (640, 360),
}


def thumbnail_name(item_id: int) -> str:
    return f"{item_id}_thumb.jpg"


def generate_thumbnail(source_path: Path | str, thumb_dir: Path | str, item_id: int,
                       size: str = 'medium') -> Optional[Path]:
    """Write the JPEG thumbnail of a gallery image.

    Returns:
        Path to the thumbnail, or None when the source can't be read
    """
    source_path = Path(source_path)
    thumb_path = Path(thumb_dir) / thumbnail_name(item_id)
    box = SIZES.get(size, SIZES['medium'])

    try:
        thumb_path.parent.mkdir(parents=True, exist_ok=True)
        with Image.open(source_path) as img:
            # rotate before cropping, phone photos carry orientation in EXIF
            img = ImageOps.exif_transpose(img)
            if img.mode != 'RGB':
                img = img.convert('RGB')
            card = ImageOps.fit(img, box, Image.Resampling.LANCZOS)
            card.save(thumb_path, 'JPEG', quality=85, optimize=True)
    except Exception as e:
        logger.error(f"Thumbnail generation failed for {source_path}: {e}")
        return None

    return thumb_path
