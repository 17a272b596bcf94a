"""SQLAlchemy database models for the projection backend.

Defines the schema for accounts and login auditing, announcements, support
tickets, system settings and the per-user presentation workspace (gallery,
playlist, themes and projector state).
Uses SQLAlchemy 2.x type-safe patterns with Mapped and mapped_column.
"""
from datetime import datetime, timezone
from enum import Enum as PyEnum
from typing import Optional, List
from sqlalchemy import Integer, String, DateTime, Float, Text, Boolean, ForeignKey, Index, JSON
from sqlalchemy import Enum as SQLEnum, event
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.engine import Engine
from telao import db


def utc_now():
    return datetime.now(timezone.utc)


def isoformat(value: Optional[datetime]) -> Optional[str]:
    """Serialize a stored datetime as ISO 8601 UTC (SQLite returns naive values)."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


# ============================================================================
# Enums
# ============================================================================

class UserRole(str, PyEnum):
    """Account role."""
    ADMIN = "admin"
    USER = "user"


class AnnouncementType(str, PyEnum):
    """Kind of content shown in the announcements slideshow."""
    IMAGE = "image"
    VIDEO = "video"
    TEXT = "text"


class SupportTicketStatus(str, PyEnum):
    """Support ticket lifecycle."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class MediaType(str, PyEnum):
    """Gallery item kind."""
    IMAGE = "image"
    VIDEO = "video"
    AUDIO = "audio"
    TEXT = "text"


class FitMode(str, PyEnum):
    """How media is fitted to the projector frame."""
    CONTAIN = "contain"
    COVER = "cover"
    STRETCH = "stretch"
    CROP = "crop"


class TextAlign(str, PyEnum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


# ============================================================================
# Accounts
# ============================================================================

class User(db.Model):
    """Console account (operator or administrator)."""
    __tablename__ = 'users'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    phone: Mapped[str] = mapped_column(String(30), default='', nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole),
        default=UserRole.USER,
        nullable=False
    )

    # Password recovery (answers are stored hashed)
    security_question1: Mapped[str] = mapped_column(String(255), nullable=False)
    security_answer1: Mapped[str] = mapped_column(String(255), nullable=False)
    security_question2: Mapped[str] = mapped_column(String(255), nullable=False)
    security_answer2: Mapped[str] = mapped_column(String(255), nullable=False)
    security_question3: Mapped[str] = mapped_column(String(255), nullable=False)
    security_answer3: Mapped[str] = mapped_column(String(255), nullable=False)

    # Login protection
    is_blocked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    failed_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_failed_attempt: Mapped[Optional[datetime]] = mapped_column(DateTime)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utc_now,
        onupdate=utc_now,
        nullable=False
    )

    settings: Mapped[Optional["UserSettings"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan"
    )

    def to_public_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'username': self.username,
            'phone': self.phone,
            'role': self.role.value,
            'createdAt': isoformat(self.created_at),
            'updatedAt': isoformat(self.updated_at),
        }

    def to_admin_dict(self):
        data = self.to_public_dict()
        data.update({
            'isBlocked': self.is_blocked,
            'failedAttempts': self.failed_attempts,
            'lastFailedAttempt': isoformat(self.last_failed_attempt),
        })
        return data

    def __repr__(self):
        return f"<User {self.id}: {self.username} ({self.role.value})>"


class LoginAttempt(db.Model):
    """Audit record for every login attempt."""
    __tablename__ = 'login_attempts'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[Optional[int]] = mapped_column(ForeignKey('users.id', ondelete='SET NULL'))
    email: Mapped[str] = mapped_column(String(255), nullable=False)  # identifier as typed
    ip_address: Mapped[Optional[str]] = mapped_column(String(64))
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    user_agent: Mapped[Optional[str]] = mapped_column(String(500))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)

    __table_args__ = (
        Index('ix_login_attempts_email_created', 'email', 'created_at'),
        Index('ix_login_attempts_ip_created', 'ip_address', 'created_at'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'email': self.email,
            'ipAddress': self.ip_address,
            'success': self.success,
            'userAgent': self.user_agent,
            'createdAt': isoformat(self.created_at),
        }

    def __repr__(self):
        return f"<LoginAttempt {self.id}: {self.email} success={self.success}>"


class UserSettings(db.Model):
    """Per-user console settings."""
    __tablename__ = 'user_settings'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id'), unique=True, nullable=False)
    church_name: Mapped[Optional[str]] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utc_now,
        onupdate=utc_now,
        nullable=False
    )

    user: Mapped["User"] = relationship(back_populates="settings")

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'churchName': self.church_name,
            'createdAt': isoformat(self.created_at),
            'updatedAt': isoformat(self.updated_at),
        }


# ============================================================================
# Announcements, support and system settings
# ============================================================================

class Announcement(db.Model):
    """News item shown in the public announcements slideshow."""
    __tablename__ = 'announcements'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    type: Mapped[AnnouncementType] = mapped_column(SQLEnum(AnnouncementType), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, default='', nullable=False)
    image_url: Mapped[Optional[str]] = mapped_column(String(1000))
    video_url: Mapped[Optional[str]] = mapped_column(String(1000))
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utc_now,
        onupdate=utc_now,
        nullable=False
    )

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.type.value,
            'title': self.title,
            'content': self.content,
            'imageUrl': self.image_url,
            'videoUrl': self.video_url,
            'active': self.active,
            'createdAt': isoformat(self.created_at),
            'updatedAt': isoformat(self.updated_at),
        }


class SupportTicket(db.Model):
    """Message sent through the support dialog."""
    __tablename__ = 'support_tickets'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(30), nullable=False)
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[SupportTicketStatus] = mapped_column(
        SQLEnum(SupportTicketStatus),
        default=SupportTicketStatus.PENDING,
        nullable=False
    )
    admin_response: Mapped[Optional[str]] = mapped_column(Text)
    responded_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utc_now,
        onupdate=utc_now,
        nullable=False
    )

    __table_args__ = (
        Index('ix_support_tickets_status', 'status'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'email': self.email,
            'phone': self.phone,
            'subject': self.subject,
            'message': self.message,
            'status': self.status.value,
            'adminResponse': self.admin_response,
            'respondedAt': isoformat(self.responded_at),
            'createdAt': isoformat(self.created_at),
            'updatedAt': isoformat(self.updated_at),
        }


class SystemSettings(db.Model):
    """Global settings (single row)."""
    __tablename__ = 'system_settings'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    slideshow_interval: Mapped[int] = mapped_column(Integer, default=5000, nullable=False)  # ms
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utc_now,
        onupdate=utc_now,
        nullable=False
    )

    def to_dict(self):
        return {
            'id': self.id,
            'slideshowInterval': self.slideshow_interval,
            'createdAt': isoformat(self.created_at),
            'updatedAt': isoformat(self.updated_at),
        }


# ============================================================================
# Presentation workspace
# ============================================================================

class GalleryItem(db.Model):
    """Permanent media library entry (file upload or text slide)."""
    __tablename__ = 'gallery_items'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    type: Mapped[MediaType] = mapped_column(SQLEnum(MediaType), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Stored file (None for text slides)
    stored_name: Mapped[Optional[str]] = mapped_column(String(255))
    mime_type: Mapped[Optional[str]] = mapped_column(String(100))
    size_bytes: Mapped[Optional[int]] = mapped_column(Integer)
    file_hash: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    thumbnail_name: Mapped[Optional[str]] = mapped_column(String(255))
    duration: Mapped[Optional[float]] = mapped_column(Float)  # seconds, videos/audio

    # Text slide content and formatting
    text_title: Mapped[Optional[str]] = mapped_column(String(500))
    text_content: Mapped[Optional[str]] = mapped_column(Text)
    text_color: Mapped[Optional[str]] = mapped_column(String(50))
    text_background_color: Mapped[Optional[str]] = mapped_column(String(50))
    text_bold: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    text_italic: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    text_underline: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    text_size: Mapped[Optional[int]] = mapped_column(Integer)
    formatted_content: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)

    playlist_entries: Mapped[List["PlaylistItem"]] = relationship(
        back_populates="gallery_item",
        cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index('ix_gallery_items_user_id', 'user_id'),
    )

    @property
    def url(self) -> Optional[str]:
        if self.stored_name is None:
            return None
        return f"/api/gallery/{self.id}/file"

    @property
    def thumbnail_url(self) -> Optional[str]:
        if self.thumbnail_name is None:
            return None
        return f"/api/gallery/{self.id}/thumbnail"

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.type.value,
            'name': self.name,
            'url': self.url,
            'thumbnailUrl': self.thumbnail_url,
            'mimeType': self.mime_type,
            'sizeBytes': self.size_bytes,
            'duration': self.duration,
            'textTitle': self.text_title,
            'textContent': self.text_content,
            'textColor': self.text_color,
            'textBackgroundColor': self.text_background_color,
            'textBold': self.text_bold,
            'textItalic': self.text_italic,
            'textUnderline': self.text_underline,
            'textSize': self.text_size,
            'formattedContent': self.formatted_content,
            'createdAt': isoformat(self.created_at),
        }

    def __repr__(self):
        return f"<GalleryItem {self.id}: {self.type.value} {self.name}>"


class PlaylistItem(db.Model):
    """Entry of the service run-list, referencing a gallery item."""
    __tablename__ = 'playlist_items'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    gallery_item_id: Mapped[int] = mapped_column(
        ForeignKey('gallery_items.id', ondelete='CASCADE'),
        nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    added_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)

    gallery_item: Mapped["GalleryItem"] = relationship(back_populates="playlist_entries")

    __table_args__ = (
        Index('ix_playlist_items_user_position', 'user_id', 'position'),
    )

    def to_media_dict(self):
        """Gallery fields merged with the playlist identity and order."""
        data = self.gallery_item.to_dict()
        data.update({
            'id': self.id,
            'galleryItemId': self.gallery_item_id,
            'order': self.position,
            'addedAt': isoformat(self.added_at),
        })
        return data

    def __repr__(self):
        return f"<PlaylistItem {self.id}: gallery {self.gallery_item_id} @ {self.position}>"


class Playlist(db.Model):
    """Saved playlist settings (name, looping, legacy auto-play interval)."""
    __tablename__ = 'playlists'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    name: Mapped[str] = mapped_column(String(255), default='Culto', nullable=False)
    loop: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    auto_play_interval: Mapped[Optional[int]] = mapped_column(Integer)  # seconds
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utc_now,
        onupdate=utc_now,
        nullable=False
    )

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'loop': self.loop,
            'autoPlayInterval': self.auto_play_interval,
            'createdAt': isoformat(self.created_at),
            'updatedAt': isoformat(self.updated_at),
        }


class Theme(db.Model):
    """Text styling applied to overlays."""
    __tablename__ = 'themes'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    font_family: Mapped[str] = mapped_column(String(255), nullable=False)
    font_size: Mapped[int] = mapped_column(Integer, default=72, nullable=False)
    font_weight: Mapped[str] = mapped_column(String(20), default='900', nullable=False)
    color: Mapped[str] = mapped_column(String(50), default='#000000', nullable=False)
    text_align: Mapped[TextAlign] = mapped_column(
        SQLEnum(TextAlign),
        default=TextAlign.CENTER,
        nullable=False
    )
    text_shadow: Mapped[str] = mapped_column(String(100), default='none', nullable=False)
    background_color: Mapped[str] = mapped_column(String(50), default='transparent', nullable=False)
    padding: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'fontFamily': self.font_family,
            'fontSize': self.font_size,
            'fontWeight': self.font_weight,
            'color': self.color,
            'textAlign': self.text_align.value,
            'textShadow': self.text_shadow,
            'backgroundColor': self.background_color,
            'padding': self.padding,
        }


class ProjectorState(db.Model):
    """Live projector settings and presentation position for one operator.

    The console writes it, the projector view polls it. active_item_ids is
    the presentation snapshot (playlist item ids) taken when presenting.
    """
    __tablename__ = 'projector_states'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id', ondelete='CASCADE'), unique=True, nullable=False)

    # Output settings
    volume: Mapped[int] = mapped_column(Integer, default=80, nullable=False)
    muted: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    show_projector: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    fit_mode: Mapped[FitMode] = mapped_column(SQLEnum(FitMode), default=FitMode.STRETCH, nullable=False)
    zoom: Mapped[float] = mapped_column(Float, default=1.0, nullable=False)
    pan_x: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    pan_y: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    slide_duration: Mapped[int] = mapped_column(Integer, default=5, nullable=False)  # seconds
    text_font_size: Mapped[int] = mapped_column(Integer, default=72, nullable=False)
    auto_fit_text: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    dark_screen: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    black_screen: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    show_logo: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    logo_url: Mapped[str] = mapped_column(String(1000), default='', nullable=False)
    logo_name: Mapped[Optional[str]] = mapped_column(String(255))  # uploaded logo file
    is_live: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    content_authorized: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)  # media released while live
    transmission_paused: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    paused_item_id: Mapped[Optional[int]] = mapped_column(Integer)  # playlist item frozen on screen
    continuous_play: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    loop_current_video: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    waiting_message_title: Mapped[str] = mapped_column(String(255), default='EQUIPE DA MÍDIA', nullable=False)
    waiting_message_subtitle: Mapped[str] = mapped_column(
        String(255),
        default='MODO ESPERA - AGUARDANDO CONTEÚDO',
        nullable=False
    )
    theme_id: Mapped[Optional[int]] = mapped_column(ForeignKey('themes.id', ondelete='SET NULL'))

    # Text overlay
    overlay_title: Mapped[str] = mapped_column(String(500), default='', nullable=False)
    overlay_subtitle: Mapped[str] = mapped_column(String(500), default='', nullable=False)
    overlay_content: Mapped[str] = mapped_column(Text, default='', nullable=False)
    overlay_x: Mapped[float] = mapped_column(Float, default=50.0, nullable=False)
    overlay_y: Mapped[float] = mapped_column(Float, default=50.0, nullable=False)
    overlay_visible: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Presentation
    current_index: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    playlist_revision: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    presented: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    presented_revision: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    active_item_ids: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utc_now,
        onupdate=utc_now,
        nullable=False
    )

    theme: Mapped[Optional["Theme"]] = relationship()

    def overlay_dict(self):
        return {
            'title': self.overlay_title,
            'subtitle': self.overlay_subtitle,
            'content': self.overlay_content,
            'position': {'x': self.overlay_x, 'y': self.overlay_y},
            'visible': self.overlay_visible,
        }

    def settings_dict(self):
        """Settings in the shape the console persists and exports."""
        return {
            'volume': self.volume,
            'muted': self.muted,
            'showProjector': self.show_projector,
            'fitMode': self.fit_mode.value,
            'zoom': self.zoom,
            'panX': self.pan_x,
            'panY': self.pan_y,
            'slideDuration': self.slide_duration,
            'textFontSize': self.text_font_size,
            'autoFitText': self.auto_fit_text,
            'darkScreen': self.dark_screen,
            'blackScreen': self.black_screen,
            'showLogo': self.show_logo,
            'logoUrl': self.logo_url,
            'isLive': self.is_live,
            'continuousPlay': self.continuous_play,
            'loopCurrentVideo': self.loop_current_video,
            'waitingMessageTitle': self.waiting_message_title,
            'waitingMessageSubtitle': self.waiting_message_subtitle,
        }

    def to_dict(self):
        data = self.settings_dict()
        data.update({
            'transmissionPaused': self.transmission_paused,
            'contentAuthorized': self.content_authorized,
            'themeId': self.theme_id,
            'textOverlay': self.overlay_dict(),
            'currentIndex': self.current_index,
            'playlistRevision': self.playlist_revision,
            'presented': self.presented,
            'presentedRevision': self.presented_revision,
            'presentationOutdated': self.presented and self.playlist_revision != self.presented_revision,
            'activeItemIds': list(self.active_item_ids or []),
            'updatedAt': isoformat(self.updated_at),
        })
        return data


# ============================================================================
# SQLite Foreign Key Enforcement
# ============================================================================

@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite connections."""
    if dbapi_conn.__class__.__module__.startswith('sqlite3'):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
