"""
Huey background tasks.

Tasks run in worker processes/threads, separate from the Flask web server.
A task that needs the database reuses the caller's application context when
it runs inline (immediate mode) and creates its own otherwise.
"""
from contextlib import nullcontext
from datetime import datetime, timedelta, timezone
import logging

from flask import has_app_context, current_app
from huey import crontab

from huey_config import huey
from telao.lib.thumbnail import generate_thumbnail

logger = logging.getLogger(__name__)


def get_app():
    """
    Create Flask application for use in worker context.

    Must be called inside task to avoid import-time side effects.
    """
    from telao import create_app
    return create_app()


def _app_context():
    if has_app_context():
        return nullcontext()
    return get_app().app_context()


@huey.task(retries=2, retry_delay=30)
def generate_gallery_thumbnail(item_id: int) -> dict:
    """
    Generate the thumbnail for an uploaded gallery image.

    Args:
        item_id: ID of the GalleryItem

    Returns:
        {'item_id': int, 'status': 'completed' | 'skipped' | 'failed'}
    """
    from telao import db
    from telao.lib.media import stored_file_path
    from telao.models import GalleryItem, MediaType

    with _app_context():
        item = db.session.get(GalleryItem, item_id)
        if item is None or item.type != MediaType.IMAGE:
            logger.info(f"Thumbnail skipped for gallery item {item_id}")
            return {'item_id': item_id, 'status': 'skipped'}

        source = stored_file_path(item)
        thumb_path = generate_thumbnail(source, current_app.config['THUMBNAILS_FOLDER'], item.id)
        if thumb_path is None:
            return {'item_id': item_id, 'status': 'failed'}

        item.thumbnail_name = thumb_path.name
        db.session.commit()
        logger.info(f"Thumbnail generated for gallery item {item_id}: {thumb_path.name}")
        return {'item_id': item_id, 'status': 'completed'}


def purge_login_attempts_older_than(days: int) -> int:
    """Delete login audit records older than `days`. Needs an app context."""
    from telao.lib.accounts import purge_login_attempts

    cutoff = datetime.now(timezone.utc) - timedelta(days=days)
    removed = purge_login_attempts(cutoff)
    logger.info(f"Purged {removed} login attempt(s) older than {days} day(s)")
    return removed


@huey.periodic_task(crontab(hour='3', minute='30'))
def purge_old_login_attempts() -> int:
    """Daily cleanup of the login audit log."""
    with _app_context():
        days = current_app.config['LOGIN_ATTEMPT_RETENTION_DAYS']
        return purge_login_attempts_older_than(days)


@huey.task()
def health_check() -> dict:
    """
    Simple health check task to verify worker is running.

    Can be called from web app to confirm queue is operational.
    """
    return {
        'status': 'ok',
        'timestamp': datetime.now(timezone.utc).isoformat()
    }


def enqueue_thumbnail(item_id: int) -> str:
    """
    Helper function to enqueue a thumbnail from web app.

    Args:
        item_id: ID of the GalleryItem

    Returns:
        Huey task ID (can be used to check status)
    """
    result = generate_gallery_thumbnail(item_id)
    return result.id
