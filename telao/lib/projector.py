"""Projector render description.

build_frame() maps the projector settings, the current item and the active
theme to what the projector view (or the console's live preview) should
draw: which screen, CSS object-fit and transform for media, text styling
and the optional overlay and logo. It is pure; the routes gather its inputs.

Inputs use the camelCase dict shapes returned by the models' to_dict().
"""
from typing import Optional
import hashlib
import json

OBJECT_FIT = {
    'contain': 'contain',
    'cover': 'cover',
    'stretch': 'fill',
    'crop': 'cover',
}

DEFAULT_THEME = {
    'id': 'default',
    'name': 'Tema Padrão',
    'fontFamily': 'Arial Black, Impact, sans-serif',
    'fontSize': 72,
    'fontWeight': '900',
    'color': '#000000',
    'textAlign': 'center',
    'textShadow': 'none',
    'backgroundColor': 'transparent',
    'padding': 0,
}

TEXT_BACKGROUND = '#FFFFFF'
TEXT_COLOR = '#FFFFFF'
TEXT_FONT_FAMILY = 'Arial, sans-serif'
PREVIEW_TEXT_DIVISOR = 6.5
PREVIEW_OVERLAY_DIVISOR = 6
PREVIEW_OVERLAY_MAX = 12

# Screens, in precedence order
SCREEN_BLACK = 'black'
SCREEN_STANDBY = 'standby'
SCREEN_CLOSED = 'closed'
SCREEN_NOT_LIVE = 'not_live'
SCREEN_WAITING = 'waiting'
SCREEN_MEDIA = 'media'


def object_fit(fit_mode: Optional[str]) -> str:
    return OBJECT_FIT.get(fit_mode, 'contain')


def _number(value) -> str:
    # 1.0 -> "1", 1.5 -> "1.5"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def transform(zoom, pan_x, pan_y) -> str:
    return f"scale({_number(zoom)}) translate({_number(pan_x)}%, {_number(pan_y)}%)"


def _waiting_messages(state: dict) -> dict:
    return {
        'title': state.get('waitingMessageTitle') or '',
        'subtitle': state.get('waitingMessageSubtitle') or '',
    }


def select_screen(state: dict, item: Optional[dict], preview: bool = False) -> str:
    """Which screen to draw.

    The audience sees standby whenever the projector is closed and the
    "not live" notice until the transmission starts. The console preview
    reports a closed projector as such and shows the item whether or not
    the transmission is live.
    """
    if state.get('blackScreen'):
        return SCREEN_BLACK
    if state.get('darkScreen'):
        return SCREEN_STANDBY
    if not state.get('showProjector'):
        return SCREEN_CLOSED if preview else SCREEN_STANDBY
    if not preview and not state.get('isLive'):
        return SCREEN_NOT_LIVE
    if item is None:
        return SCREEN_WAITING
    return SCREEN_MEDIA


def media_layer(state: dict, item: dict, preview: bool = False) -> dict:
    """Drawing instructions for the current item."""
    kind = item['type']
    layer = {'type': kind, 'id': item.get('id'), 'name': item.get('name')}

    if kind in ('image', 'video'):
        layer.update({
            'url': item.get('url'),
            'objectFit': object_fit(state.get('fitMode')),
            'transform': transform(state.get('zoom', 1), state.get('panX', 0), state.get('panY', 0)),
        })
        if kind == 'video':
            layer.update({
                'loop': bool(state.get('loopCurrentVideo')),
                'muted': bool(state.get('muted')) or preview,
                'volume': state.get('volume', 80),
            })
        return layer

    if kind == 'audio':
        layer.update({
            'url': item.get('url'),
            'muted': bool(state.get('muted')) or preview,
            'volume': state.get('volume', 80),
        })
        return layer

    font_size = item.get('textSize') or state.get('textFontSize') or 72
    if preview:
        font_size = font_size / PREVIEW_TEXT_DIVISOR
    layer.update({
        'title': item.get('textTitle'),
        'content': item.get('textContent'),
        'formattedContent': item.get('formattedContent'),
        'backgroundColor': item.get('textBackgroundColor') or TEXT_BACKGROUND,
        'color': item.get('textColor') or TEXT_COLOR,
        'fontFamily': TEXT_FONT_FAMILY,
        'fontSize': font_size,
        'fontWeight': 'bold' if item.get('textBold') else 'normal',
        'fontStyle': 'italic' if item.get('textItalic') else 'normal',
        'textDecoration': 'underline' if item.get('textUnderline') else 'none',
        'autoFit': bool(state.get('autoFitText')),
    })
    return layer


def overlay_layer(overlay: Optional[dict], theme: Optional[dict], item: dict,
                  preview: bool = False) -> Optional[dict]:
    """Text overlay on top of media; never drawn over text slides."""
    if not overlay or not overlay.get('visible') or not theme or item['type'] == 'text':
        return None

    font_size = theme['fontSize']
    if preview:
        font_size = min(font_size / PREVIEW_OVERLAY_DIVISOR, PREVIEW_OVERLAY_MAX)
    position = overlay.get('position') or {'x': 50, 'y': 50}
    return {
        'title': overlay.get('title') or '',
        'subtitle': overlay.get('subtitle') or '',
        'content': overlay.get('content') or '',
        'position': {'x': position['x'], 'y': position['y']},
        'fontFamily': theme['fontFamily'],
        'fontSize': font_size,
        'fontWeight': theme.get('fontWeight'),
        'color': theme['color'],
        'textAlign': theme['textAlign'],
        'textShadow': theme.get('textShadow'),
        'backgroundColor': theme['backgroundColor'],
        'padding': theme.get('padding', 0),
    }


def build_frame(state: dict, item: Optional[dict], theme: Optional[dict],
                logo_url: Optional[str] = None, preview: bool = False) -> dict:
    """Describe what the projector shows for the given inputs.

    Args:
        state: ProjectorState.to_dict() shaped settings
        item: current gallery/media dict, or None
        theme: active theme dict, or None
        logo_url: URL of the logo, shown when state['showLogo'] is set
        preview: small console preview instead of the audience screen

    Returns:
        dict with 'screen' plus the layers relevant to that screen
    """
    is_live = bool(state.get('isLive'))
    awaiting_authorization = is_live and not state.get('contentAuthorized')
    if awaiting_authorization:
        # live but the operator hasn't released the media yet
        item = None

    screen = select_screen(state, item, preview)
    frame = {
        'screen': screen,
        'preview': preview,
        'isLive': is_live,
        'liveBadge': preview and is_live,
        'awaitingAuthorization': awaiting_authorization,
        'transmissionPaused': bool(state.get('transmissionPaused')),
    }

    if screen in (SCREEN_STANDBY, SCREEN_WAITING):
        frame['waiting'] = _waiting_messages(state)
        return frame
    if screen != SCREEN_MEDIA:
        return frame

    frame['media'] = media_layer(state, item, preview)
    frame['overlay'] = overlay_layer(state.get('textOverlay'), theme, item, preview)
    if state.get('showLogo') and logo_url:
        frame['logo'] = {'url': logo_url}
    return frame


def frame_revision(frame: dict) -> str:
    """Short digest of a frame; clients skip redrawing while it is unchanged."""
    encoded = json.dumps(frame, sort_keys=True, default=str).encode('utf-8')
    return hashlib.sha256(encoded).hexdigest()[:16]
