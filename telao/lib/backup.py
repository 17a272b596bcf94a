"""Workspace export and import.

The export document (version 2) carries the operator's whole workspace:
gallery items with their file contents as base64 data URLs, the playlist,
saved playlist settings, custom themes, projector settings and the logo.
Importing such a document replaces the same parts of the workspace.
"""
from datetime import datetime, timezone
import logging

from pydantic import ValidationError

from telao import db
from telao.lib import media
from telao.lib import playlist as playlist_ops
from telao.models import GalleryItem, MediaType, PlaylistItem, Theme, TextAlign
from telao.schemas import BackupDocument, BackupTheme

logger = logging.getLogger(__name__)

EXPORT_VERSION = 2

# Settings that never travel with a backup
IMPORT_EXCLUDED_SETTINGS = {'is_live', 'logo_url', 'theme_id'}


class BackupError(Exception):
    """Backup document cannot be imported; message is user facing."""


def export_workspace(user_id: int) -> dict:
    state = playlist_ops.get_state(user_id)
    saved_playlist = playlist_ops.get_playlist(user_id)

    gallery = []
    for item in GalleryItem.query.filter_by(user_id=user_id).order_by(GalleryItem.id).all():
        data = item.to_dict()
        data.pop('url')
        data.pop('thumbnailUrl')
        path = media.stored_file_path(item)
        data['blobData'] = media.encode_data_url(path, item.mime_type) if path and path.exists() else None
        gallery.append(data)

    playlist_items = [
        {
            'id': entry.id,
            'galleryItemId': entry.gallery_item_id,
            'order': entry.position,
        }
        for entry in playlist_ops.playlist_items(user_id)
    ]

    settings = state.settings_dict()
    settings['isLive'] = False
    settings['logoUrl'] = ''

    logo = media.logo_path(state)
    logo_data = None
    if logo is not None and logo.exists():
        logo_data = media.encode_data_url(logo, _logo_mime(state.logo_name))

    themes = Theme.query.filter_by(user_id=user_id).order_by(Theme.id).all()

    return {
        'version': EXPORT_VERSION,
        'playlists': [saved_playlist.to_dict()],
        'galleryItems': gallery,
        'playlistItems': playlist_items,
        'themes': [theme.to_dict() for theme in themes],
        'settings': settings,
        'logoBlobData': logo_data,
        'currentTheme': state.theme.to_dict() if state.theme else None,
        'exportDate': datetime.now(timezone.utc).isoformat(),
    }


def _logo_mime(name: str) -> str:
    ext = media.file_extension(name or '')
    if ext == 'svg':
        return 'image/svg+xml'
    if ext in ('jpg', 'jpeg'):
        return 'image/jpeg'
    return f'image/{ext}' if ext else 'application/octet-stream'


def _theme_from_backup(user_id: int, payload: BackupTheme) -> Theme:
    return Theme(
        user_id=user_id,
        name=payload.name,
        font_family=payload.font_family,
        font_size=payload.font_size,
        font_weight=payload.font_weight,
        color=payload.color,
        text_align=TextAlign(payload.text_align),
        text_shadow=payload.text_shadow,
        background_color=payload.background_color,
        padding=payload.padding,
    )


def _clear_workspace(user_id: int, state) -> list:
    """Delete the workspace rows. Returns the files to discard after commit."""
    state.theme_id = None
    items = GalleryItem.query.filter_by(user_id=user_id).all()
    stale = [path for item in items for path in media.stored_files(item)]
    PlaylistItem.query.filter_by(user_id=user_id).delete()
    for item in items:
        db.session.delete(item)
    Theme.query.filter_by(user_id=user_id).delete()
    db.session.flush()
    return stale


def import_workspace(user_id: int, raw: dict) -> dict:
    """Replace the user's workspace with a backup document (not committed).

    Returns:
        dict with counts, 'imageIds' (gallery ids needing thumbnails) and
        'staleFiles' (replaced files, for media.discard_unreferenced after commit)

    Raises:
        BackupError: unsupported version, malformed document or file data
    """
    if not isinstance(raw, dict):
        raise BackupError('Arquivo de backup inválido')
    if raw.get('version') != EXPORT_VERSION:
        raise BackupError(f"Versão de backup não suportada: {raw.get('version')}")
    try:
        document = BackupDocument.model_validate(raw)
    except ValidationError as e:
        raise BackupError(f"Arquivo de backup inválido: {e.errors()[0]['msg']}")

    # Decode every file before touching the current workspace
    files = {}
    for entry in document.gallery_items:
        if entry.type == MediaType.TEXT.value or not entry.blob_data:
            continue
        try:
            files[str(entry.id)] = media.decode_data_url(entry.blob_data)
        except ValueError as e:
            raise BackupError(f"Dados do arquivo '{entry.name}' inválidos") from e
    logo = None
    if document.logo_blob_data:
        try:
            logo = media.decode_data_url(document.logo_blob_data)
        except ValueError as e:
            raise BackupError('Dados do logotipo inválidos') from e

    state = playlist_ops.get_state(user_id)
    stale_files = _clear_workspace(user_id, state)

    # Gallery
    id_map = {}
    image_ids = []
    skipped = 0
    for entry in document.gallery_items:
        media_type = MediaType(entry.type)
        item = GalleryItem(
            user_id=user_id,
            type=media_type,
            name=entry.name,
            duration=entry.duration,
            text_title=entry.text_title,
            text_content=entry.text_content,
            text_color=entry.text_color,
            text_background_color=entry.text_background_color,
            text_bold=entry.text_bold,
            text_italic=entry.text_italic,
            text_underline=entry.text_underline,
            text_size=entry.text_size,
            formatted_content=entry.formatted_content,
        )
        if media_type != MediaType.TEXT:
            if str(entry.id) not in files:
                logger.warning(f"Backup item {entry.id} ({entry.name}) has no file data, skipping")
                skipped += 1
                continue
            mime_type, data = files[str(entry.id)]
            ext = media.extension_for(entry.name, mime_type)
            item.stored_name, item.file_hash, item.size_bytes = media.store_bytes(user_id, data, ext)
            item.mime_type = entry.mime_type or mime_type
        db.session.add(item)
        db.session.flush()
        id_map[str(entry.id)] = item
        if media_type == MediaType.IMAGE:
            image_ids.append(item.id)

    # Playlist, in saved order; entries pointing at missing items are dropped
    position = 0
    for entry in sorted(document.playlist_items, key=lambda p: p.order):
        gallery_item = id_map.get(str(entry.gallery_item_id))
        if gallery_item is None:
            continue
        db.session.add(PlaylistItem(user_id=user_id, gallery_item=gallery_item, position=position))
        position += 1

    # Saved playlist settings (the first playlist is the current one)
    saved_playlist = playlist_ops.get_playlist(user_id)
    if document.playlists:
        first = document.playlists[0]
        saved_playlist.name = first.name
        saved_playlist.loop = first.loop
        saved_playlist.auto_play_interval = first.auto_play_interval

    # Themes
    theme_map = {}
    for entry in document.themes:
        if str(entry.id) == 'default':
            continue
        theme = _theme_from_backup(user_id, entry)
        db.session.add(theme)
        theme_map[str(entry.id)] = theme
    if document.current_theme is not None and str(document.current_theme.id) != 'default':
        current = theme_map.get(str(document.current_theme.id))
        if current is None:
            current = _theme_from_backup(user_id, document.current_theme)
            db.session.add(current)
        db.session.flush()
        state.theme_id = current.id

    # Projector settings
    if document.settings is not None:
        values = document.settings.model_dump(exclude_unset=True, exclude=IMPORT_EXCLUDED_SETTINGS)
        playlist_ops.apply_settings(state, {k: v for k, v in values.items() if v is not None})
    state.is_live = False
    playlist_ops.reset_presentation(state)
    state.playlist_revision = (state.playlist_revision or 0) + 1

    # Logo
    if logo is not None:
        mime_type, data = logo
        media.store_logo(state, data, media.extension_for(None, mime_type))
        state.logo_url = media.LOGO_URL

    db.session.flush()
    counts = {
        'galleryItems': len(id_map),
        'playlistItems': position,
        'themes': len(theme_map),
        'skipped': skipped,
        'imageIds': image_ids,
        'staleFiles': stale_files,
    }
    logger.info(
        f"User {user_id} imported backup: {counts['galleryItems']} gallery, "
        f"{counts['playlistItems']} playlist, {counts['themes']} themes"
    )
    return counts
