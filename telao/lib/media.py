"""Gallery storage helpers.

Uploaded files live under UPLOAD_FOLDER/user_<id>/<sha256><ext>, so the same
content uploaded twice by one operator is written to disk once. Text slides
have no stored file.
"""
from pathlib import Path
from typing import Optional, List
import base64
import binascii
import io
import logging
import mimetypes
import re
import shutil

from flask import current_app
from werkzeug.datastructures import FileStorage

from telao import db
from telao.lib.hashing import calculate_stream_sha256
from telao.models import GalleryItem, MediaType

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {'jpg', 'jpeg', 'png', 'gif', 'webp', 'bmp'}
VIDEO_EXTENSIONS = {'mp4', 'webm', 'mov', 'mkv', 'avi'}
AUDIO_EXTENSIONS = {'mp3', 'm4a', 'wav', 'ogg', 'aac', 'flac'}
ALLOWED_EXTENSIONS = IMAGE_EXTENSIONS | VIDEO_EXTENSIONS | AUDIO_EXTENSIONS

LOGO_EXTENSIONS = {'jpg', 'jpeg', 'png', 'gif', 'webp', 'svg'}
LOGO_URL = '/api/projector/logo'

DEFAULT_TEXT_SIZE = 72
DEFAULT_SLIDE_DURATION = 5  # seconds

PARAGRAPH_SPLIT = re.compile(r'\n\n+')
DATA_URL_HEADER = re.compile(r'^data:([^;,]*)(?:;[^;,]+)*;base64$')


def file_extension(filename: str) -> str:
    if '.' not in filename:
        return ''
    return filename.rsplit('.', 1)[1].lower()


def allowed_file(filename: str) -> bool:
    """
    Check if file extension is allowed.

    Args:
        filename: Name of the file to check

    Returns:
        True if extension is an accepted image, video or audio type
    """
    return file_extension(filename) in ALLOWED_EXTENSIONS


def detect_media_type(filename: str, mime_type: Optional[str]) -> MediaType:
    """Gallery type from the upload's MIME prefix, falling back to extension.

    Anything that is neither image/ nor video/ is treated as audio, the
    same way the console classifies dropped files.
    """
    if mime_type:
        if mime_type.startswith('image/'):
            return MediaType.IMAGE
        if mime_type.startswith('video/'):
            return MediaType.VIDEO
        if mime_type.startswith('audio/'):
            return MediaType.AUDIO

    ext = file_extension(filename)
    if ext in IMAGE_EXTENSIONS:
        return MediaType.IMAGE
    if ext in VIDEO_EXTENSIONS:
        return MediaType.VIDEO
    return MediaType.AUDIO


def user_upload_dir(user_id: int) -> Path:
    path = current_app.config['UPLOAD_FOLDER'] / f'user_{user_id}'
    path.mkdir(parents=True, exist_ok=True)
    return path


def stored_file_path(item: GalleryItem) -> Optional[Path]:
    if item.stored_name is None:
        return None
    return current_app.config['UPLOAD_FOLDER'] / f'user_{item.user_id}' / item.stored_name


def thumbnail_file_path(item: GalleryItem) -> Optional[Path]:
    if item.thumbnail_name is None:
        return None
    return current_app.config['THUMBNAILS_FOLDER'] / item.thumbnail_name


def save_upload(user_id: int, upload: FileStorage, duration: Optional[float] = None) -> GalleryItem:
    """Store an uploaded file and create its gallery record (not committed).

    Identical content already in this user's gallery reuses the stored file.
    """
    upload.stream.seek(0)
    file_hash = calculate_stream_sha256(upload.stream)
    upload.stream.seek(0)

    ext = file_extension(upload.filename)
    stored_name = f"{file_hash}.{ext}" if ext else file_hash
    target = user_upload_dir(user_id) / stored_name

    existing = GalleryItem.query.filter_by(user_id=user_id, file_hash=file_hash).first()
    if existing is not None and target.exists():
        logger.debug(f"Reusing stored file {stored_name} for user {user_id}")
    else:
        upload.save(str(target))

    media_type = detect_media_type(upload.filename, upload.mimetype)
    item = GalleryItem(
        user_id=user_id,
        type=media_type,
        name=upload.filename,
        stored_name=stored_name,
        mime_type=upload.mimetype or None,
        size_bytes=target.stat().st_size,
        file_hash=file_hash,
        duration=duration if media_type in (MediaType.VIDEO, MediaType.AUDIO) else None,
    )
    if existing is not None and existing.thumbnail_name:
        item.thumbnail_name = existing.thumbnail_name
    db.session.add(item)
    return item


def store_bytes(user_id: int, data: bytes, ext: str) -> tuple:
    """Write content into the user's upload dir, named by its hash.

    Returns:
        (stored_name, file_hash, size_bytes)
    """
    file_hash = calculate_stream_sha256(io.BytesIO(data))
    stored_name = f"{file_hash}.{ext}" if ext else file_hash
    target = user_upload_dir(user_id) / stored_name
    if not target.exists():
        target.write_bytes(data)
    return stored_name, file_hash, len(data)


def decode_data_url(data_url: str) -> tuple:
    """Split a base64 data URL into (mime_type, bytes).

    Raises:
        ValueError: not a base64 data URL
    """
    header, sep, payload = data_url.partition(',')
    match = DATA_URL_HEADER.match(header)
    if not sep or match is None:
        raise ValueError('Invalid data URL')
    try:
        data = base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise ValueError(f'Invalid base64 payload: {e}')
    return match.group(1) or 'application/octet-stream', data


def encode_data_url(path: Path, mime_type: Optional[str]) -> str:
    encoded = base64.b64encode(path.read_bytes()).decode('ascii')
    return f"data:{mime_type or 'application/octet-stream'};base64,{encoded}"


def stored_files(item: GalleryItem) -> List[Path]:
    """The item's file and thumbnail on disk, for discard_unreferenced()."""
    return [path for path in (stored_file_path(item), thumbnail_file_path(item)) if path is not None]


def discard_unreferenced(user_id: int, paths: List[Path]) -> int:
    """Delete files that no gallery item references any more.

    Runs after the commit that removed the rows, so a rolled back
    transaction never leaves rows pointing at deleted files. Content is
    shared by hash, so a path may be back in use (a re-import) and is kept.

    Returns:
        Number of files deleted
    """
    thumbs_dir = current_app.config['THUMBNAILS_FOLDER']
    removed = 0
    for path in set(paths):
        if path.parent == thumbs_dir:
            in_use = GalleryItem.query.filter_by(thumbnail_name=path.name).count()
        else:
            in_use = GalleryItem.query.filter_by(user_id=user_id, stored_name=path.name).count()
        if in_use or not path.exists():
            continue
        path.unlink()
        removed += 1
    return removed


def remove_user_files(user_id: int, thumbnail_names: List[str]) -> None:
    """Delete a user's upload directory and thumbnails (account deletion)."""
    path = current_app.config['UPLOAD_FOLDER'] / f'user_{user_id}'
    if path.exists():
        shutil.rmtree(path)
    for name in thumbnail_names:
        thumb = current_app.config['THUMBNAILS_FOLDER'] / name
        if thumb.exists():
            thumb.unlink()


def split_text_slides(title: str, content: str) -> List[dict]:
    """Split slide text into one slide per paragraph.

    Formatted content (containing <span markup) and single paragraphs stay
    a single slide. Returns a list of {name, text_content} dicts.
    """
    has_formatting = '<span' in content
    if has_formatting:
        paragraphs = [content]
    else:
        paragraphs = [p for p in PARAGRAPH_SPLIT.split(content) if p.strip()]

    base_name = title or 'Slide de Texto'
    if len(paragraphs) > 1 and not has_formatting:
        total = len(paragraphs)
        return [
            {'name': f"{base_name} ({i}/{total})", 'text_content': paragraph.strip()}
            for i, paragraph in enumerate(paragraphs, start=1)
        ]
    return [{'name': base_name, 'text_content': content}]


def create_text_slides(user_id: int, payload) -> List[GalleryItem]:
    """Create text slide gallery items from a TextSlideCreate payload (not committed)."""
    slides = split_text_slides(payload.title, payload.content)
    text_size = payload.size if payload.size and payload.size > DEFAULT_TEXT_SIZE else None

    items = []
    for slide in slides:
        item = GalleryItem(
            user_id=user_id,
            type=MediaType.TEXT,
            name=slide['name'],
            text_title=payload.title,
            text_content=slide['text_content'],
            text_color=payload.color,
            text_background_color=payload.background_color,
            text_bold=payload.bold,
            text_italic=payload.italic,
            text_underline=payload.underline,
            text_size=text_size,
            # Paragraph slides drop the rich text; it belongs to the whole block
            formatted_content=payload.formatted_content if len(slides) == 1 else None,
        )
        db.session.add(item)
        items.append(item)
    return items


def effective_duration(item: GalleryItem, slide_duration: Optional[int],
                       auto_play_interval: Optional[int] = None) -> float:
    """Seconds an item stays on screen during continuous play."""
    if item.type == MediaType.VIDEO and item.duration:
        return item.duration
    return slide_duration or auto_play_interval or DEFAULT_SLIDE_DURATION


def extension_for(name: Optional[str], mime_type: Optional[str]) -> str:
    """File extension from a name, else guessed from the MIME type."""
    ext = file_extension(name or '')
    if ext:
        return ext
    guessed = mimetypes.guess_extension(mime_type or '') or ''
    return guessed.lstrip('.')


# ============================================================================
# Logo
# ============================================================================

def logo_path(state) -> Optional[Path]:
    if not state.logo_name:
        return None
    return current_app.config['UPLOAD_FOLDER'] / f'user_{state.user_id}' / state.logo_name


def remove_logo(state) -> None:
    path = logo_path(state)
    if path is not None and path.exists():
        path.unlink()
    state.logo_name = None


def store_logo(state, data: bytes, ext: str) -> str:
    """Replace the operator's logo file. Returns the new stored name."""
    remove_logo(state)
    name = f"logo.{ext}" if ext else 'logo'
    (user_upload_dir(state.user_id) / name).write_bytes(data)
    state.logo_name = name
    return name
