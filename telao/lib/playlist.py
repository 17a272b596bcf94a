"""Playlist and presentation state operations.

The playlist is the operator's ordered run-list. Presenting takes a
snapshot of its item ids into the projector state; later playlist edits
only bump playlist_revision until the operator updates the presentation.
Navigation acts on the snapshot while presented and on the live playlist
otherwise. Functions flush but leave committing to the caller.
"""
from typing import Optional, List
import logging

from telao import db
from telao.models import ProjectorState, Playlist, PlaylistItem, GalleryItem, FitMode

logger = logging.getLogger(__name__)


class PlaylistError(Exception):
    """Invalid playlist operation; message is user facing."""


class EmptyPlaylistError(PlaylistError):
    pass


def get_state(user_id: int) -> ProjectorState:
    """Projector state for a user, created with defaults on first use."""
    state = ProjectorState.query.filter_by(user_id=user_id).first()
    if state is None:
        state = ProjectorState(user_id=user_id, active_item_ids=[])
        db.session.add(state)
        db.session.flush()
    return state


def get_playlist(user_id: int) -> Playlist:
    playlist = Playlist.query.filter_by(user_id=user_id).first()
    if playlist is None:
        playlist = Playlist(user_id=user_id)
        db.session.add(playlist)
        db.session.flush()
    return playlist


def apply_settings(state: ProjectorState, values: dict) -> None:
    """Copy validated snake_case settings onto the state."""
    for field, value in values.items():
        if field == 'fit_mode':
            value = FitMode(value)
        setattr(state, field, value)


def playlist_items(user_id: int) -> List[PlaylistItem]:
    return PlaylistItem.query.filter_by(user_id=user_id).order_by(
        PlaylistItem.position, PlaylistItem.id
    ).all()


def _bump(state: ProjectorState) -> None:
    state.playlist_revision = (state.playlist_revision or 0) + 1


def _renumber(items: List[PlaylistItem]) -> None:
    for position, item in enumerate(items):
        item.position = position


def add_item(user_id: int, gallery_item: GalleryItem) -> PlaylistItem:
    state = get_state(user_id)
    count = PlaylistItem.query.filter_by(user_id=user_id).count()
    entry = PlaylistItem(user_id=user_id, gallery_item=gallery_item, position=count)
    db.session.add(entry)
    _bump(state)
    db.session.flush()
    return entry


def remove_item(user_id: int, entry: PlaylistItem, bump: bool = True) -> None:
    """Remove an entry and close the gap in positions."""
    state = get_state(user_id)
    db.session.delete(entry)
    db.session.flush()
    _renumber(playlist_items(user_id))
    if bump:
        _bump(state)
    db.session.flush()


def remove_gallery_item(user_id: int, gallery_item: GalleryItem) -> None:
    """Drop every playlist entry of a gallery item, bumping the revision once."""
    entries = [entry for entry in playlist_items(user_id) if entry.gallery_item_id == gallery_item.id]
    for entry in entries:
        remove_item(user_id, entry, bump=False)
    if entries:
        _bump(get_state(user_id))
        db.session.flush()


def reorder(user_id: int, item_ids: List[int]) -> List[PlaylistItem]:
    """Apply a new order. item_ids must be a permutation of the current ids."""
    items = playlist_items(user_id)
    by_id = {item.id: item for item in items}
    if len(item_ids) != len(items) or set(item_ids) != set(by_id):
        raise PlaylistError('A nova ordem deve conter exatamente os itens da lista')

    ordered = [by_id[item_id] for item_id in item_ids]
    _renumber(ordered)
    _bump(get_state(user_id))
    db.session.flush()
    return ordered


def reset_presentation(state: ProjectorState) -> None:
    state.presented = False
    state.active_item_ids = []
    state.current_index = 0
    state.presented_revision = 0


def clear(user_id: int) -> int:
    """Remove every playlist entry (gallery is kept). Returns the count removed."""
    state = get_state(user_id)
    removed = PlaylistItem.query.filter_by(user_id=user_id).delete()
    reset_presentation(state)
    state.content_authorized = False
    _bump(state)
    db.session.flush()
    return removed


# ============================================================================
# Presentation
# ============================================================================

def active_items(user_id: int, state: Optional[ProjectorState] = None) -> List[PlaylistItem]:
    """Items navigation acts on: the snapshot while presented, else the playlist.

    Snapshot entries removed from the playlist since presenting are skipped.
    """
    state = state or get_state(user_id)
    items = playlist_items(user_id)
    if not state.presented:
        return items
    by_id = {item.id: item for item in items}
    return [by_id[item_id] for item_id in (state.active_item_ids or []) if item_id in by_id]


def current_item(user_id: int, state: Optional[ProjectorState] = None) -> Optional[PlaylistItem]:
    state = state or get_state(user_id)
    items = active_items(user_id, state)
    if 0 <= state.current_index < len(items):
        return items[state.current_index]
    return None


def _clamp(index: int, length: int) -> int:
    return max(0, min(index, length - 1))


def present(user_id: int) -> ProjectorState:
    """Snapshot the playlist and put it on the projector."""
    state = get_state(user_id)
    items = playlist_items(user_id)
    if not items:
        raise EmptyPlaylistError('Adicione itens à lista de reprodução antes de apresentar')

    state.active_item_ids = [item.id for item in items]
    state.current_index = _clamp(state.current_index, len(items))
    state.presented = True
    state.presented_revision = state.playlist_revision
    state.show_projector = True
    state.dark_screen = False
    state.black_screen = False
    db.session.flush()
    logger.info(f"User {user_id} presenting {len(items)} item(s) at revision {state.playlist_revision}")
    return state


def update_presentation(user_id: int) -> ProjectorState:
    """Refresh the snapshot from the current playlist, keeping the position if valid."""
    state = get_state(user_id)
    items = playlist_items(user_id)
    if not items:
        raise EmptyPlaylistError('Não é possível atualizar com lista vazia')

    state.active_item_ids = [item.id for item in items]
    state.current_index = _clamp(state.current_index, len(items))
    state.presented = True
    state.presented_revision = state.playlist_revision
    db.session.flush()
    return state


def end_presentation(state: ProjectorState) -> None:
    """Leave live mode and reset every transmission flag."""
    state.is_live = False
    state.dark_screen = False
    state.black_screen = False
    state.transmission_paused = False
    state.paused_item_id = None
    state.content_authorized = False
    reset_presentation(state)


def next_item(user_id: int) -> ProjectorState:
    """Advance one item. On the last item wrap to 0 only when looping."""
    state = get_state(user_id)
    length = len(active_items(user_id, state))
    if length == 0:
        return state

    if state.current_index >= length - 1:
        playlist = get_playlist(user_id)
        if state.continuous_play or playlist.loop:
            state.current_index = 0
        else:
            state.current_index = length - 1
    else:
        state.current_index += 1
    db.session.flush()
    return state


def previous_item(user_id: int) -> ProjectorState:
    state = get_state(user_id)
    state.current_index = max(0, state.current_index - 1)
    db.session.flush()
    return state


def goto(user_id: int, index: int) -> ProjectorState:
    """Send the item at index to the projector."""
    state = get_state(user_id)
    length = len(active_items(user_id, state))
    if index >= length:
        raise PlaylistError('Índice fora da lista')
    state.current_index = index
    db.session.flush()
    return state


def send_gallery_item(user_id: int, gallery_item: GalleryItem) -> ProjectorState:
    """Put a gallery item on the projector, appending it to the playlist if needed.

    While presenting, an entry missing from the snapshot (just appended, or
    added after the last update) refreshes the snapshot first.
    """
    state = get_state(user_id)
    entry = PlaylistItem.query.filter_by(
        user_id=user_id, gallery_item_id=gallery_item.id
    ).order_by(PlaylistItem.position).first()
    if entry is None:
        entry = add_item(user_id, gallery_item)

    ids = [item.id for item in active_items(user_id, state)]
    if entry.id not in ids:
        update_presentation(user_id)
        ids = [item.id for item in active_items(user_id, state)]
    state.current_index = ids.index(entry.id)
    db.session.flush()
    return state
