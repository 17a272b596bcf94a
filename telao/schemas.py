"""Request body schemas.

Pydantic models validating JSON payloads before they reach the database.
Messages are user facing (the console shows them verbatim), so they are
raised as PydanticCustomError to keep the text unprefixed.
"""
import re
from typing import Optional, List, Literal

from flask import jsonify, request
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic_core import PydanticCustomError

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _min_length(value: str, length: int, message: str) -> str:
    if value is None or len(value) < length:
        raise PydanticCustomError('too_short', message)
    return value


class Payload(BaseModel):
    """Base for camelCase request bodies.

    Defaults are validated too, so a missing required field fails with the
    same message as an empty one.
    """
    model_config = ConfigDict(populate_by_name=True, extra='ignore', validate_default=True)


def parse_body(model):
    """Validate the current request's JSON body against a schema.

    Returns:
        (instance, None) on success or (None, (response, 400)) on failure
    """
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        return None, (jsonify({'message': 'Corpo da requisição inválido'}), 400)
    try:
        return model.model_validate(data), None
    except ValidationError as e:
        return None, (jsonify({'message': first_error_message(e)}), 400)


def first_error_message(error: ValidationError) -> str:
    errors = error.errors()
    if not errors:
        return 'Dados inválidos'
    first = errors[0]
    if first['type'] in ('missing', 'string_type') and first.get('loc'):
        return f"Campo obrigatório: {first['loc'][-1]}"
    return first['msg']


# ============================================================================
# Auth
# ============================================================================

class LoginRequest(Payload):
    identifier: str = ''
    password: str = ''

    @field_validator('identifier')
    @classmethod
    def _identifier(cls, v):
        return _min_length(v, 1, 'Email ou nome de usuário obrigatório')

    @field_validator('password')
    @classmethod
    def _password(cls, v):
        return _min_length(v, 6, 'Senha deve ter pelo menos 6 caracteres')


class AccountFields(Payload):
    email: str = ''
    username: str = ''
    phone: str = ''
    password: str = ''

    @field_validator('email')
    @classmethod
    def _email(cls, v):
        v = v.strip()
        if not EMAIL_RE.match(v):
            raise PydanticCustomError('email', 'Email inválido')
        return v

    @field_validator('username')
    @classmethod
    def _username(cls, v):
        return _min_length(v.strip(), 3, 'Usuário deve ter pelo menos 3 caracteres')

    @field_validator('phone')
    @classmethod
    def _phone(cls, v):
        return _min_length(v.strip(), 10, 'Telefone deve ter pelo menos 10 dígitos')

    @field_validator('password')
    @classmethod
    def _password(cls, v):
        return _min_length(v, 6, 'Senha deve ter pelo menos 6 caracteres')


class PasswordConfirmation(AccountFields):
    confirm_password: str = Field('', alias='confirmPassword')

    @field_validator('confirm_password')
    @classmethod
    def _confirm(cls, v):
        return _min_length(v, 6, 'Confirmação de senha obrigatória')

    @model_validator(mode='after')
    def _passwords_match(self):
        if self.password != self.confirm_password:
            raise PydanticCustomError('password_mismatch', 'As senhas não coincidem')
        return self


class SecurityQuestions(Payload):
    security_question1: str = Field('', alias='securityQuestion1')
    security_answer1: str = Field('', alias='securityAnswer1')
    security_question2: str = Field('', alias='securityQuestion2')
    security_answer2: str = Field('', alias='securityAnswer2')
    security_question3: str = Field('', alias='securityQuestion3')
    security_answer3: str = Field('', alias='securityAnswer3')

    @field_validator('security_question1', 'security_question2', 'security_question3')
    @classmethod
    def _question(cls, v):
        return _min_length(v, 1, 'Pergunta de segurança obrigatória')

    @field_validator('security_answer1', 'security_answer2', 'security_answer3')
    @classmethod
    def _answer(cls, v):
        return _min_length(v, 1, 'Resposta obrigatória')

    def questions(self):
        return {
            'question1': self.security_question1,
            'answer1': self.security_answer1,
            'question2': self.security_question2,
            'answer2': self.security_answer2,
            'question3': self.security_question3,
            'answer3': self.security_answer3,
        }


# Fields are collected from the last base first, so the account fields are
# validated (and their errors reported) before the security questions.
class NewAccountRequest(SecurityQuestions, AccountFields):
    """Account created by an admin; no password confirmation."""


class RegisterRequest(SecurityQuestions, PasswordConfirmation):
    pass


class RefreshRequest(Payload):
    refresh_token: str = Field('', alias='refreshToken')


class IdentifierRequest(Payload):
    identifier: str = ''

    @field_validator('identifier')
    @classmethod
    def _identifier(cls, v):
        return _min_length(v.strip(), 1, 'Email ou nome de usuário obrigatório')


class ResetPasswordRequest(IdentifierRequest):
    answer1: str = ''
    answer2: str = ''
    answer3: str = ''
    new_password: str = Field('', alias='newPassword')
    confirm_new_password: Optional[str] = Field(None, alias='confirmNewPassword')

    @field_validator('answer1', 'answer2', 'answer3')
    @classmethod
    def _answer(cls, v):
        return _min_length(v, 1, 'Resposta obrigatória')

    @field_validator('new_password')
    @classmethod
    def _password(cls, v):
        return _min_length(v, 6, 'Senha deve ter pelo menos 6 caracteres')

    @model_validator(mode='after')
    def _passwords_match(self):
        if self.confirm_new_password is not None and self.confirm_new_password != self.new_password:
            raise PydanticCustomError('password_mismatch', 'As senhas não coincidem')
        return self


class ChangePasswordRequest(Payload):
    current_password: str = Field('', alias='currentPassword')
    new_password: str = Field('', alias='newPassword')

    @field_validator('new_password')
    @classmethod
    def _password(cls, v):
        return _min_length(v, 6, 'Senha deve ter pelo menos 6 caracteres')


class AdminPasswordReset(Payload):
    new_password: str = Field('', alias='newPassword')

    @field_validator('new_password')
    @classmethod
    def _password(cls, v):
        return _min_length(v, 6, 'Senha deve ter pelo menos 6 caracteres')


class UserUpdate(Payload):
    email: Optional[str] = None
    username: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[Literal['admin', 'user']] = None

    @field_validator('email')
    @classmethod
    def _email(cls, v):
        if v is not None and not EMAIL_RE.match(v.strip()):
            raise PydanticCustomError('email', 'Email inválido')
        return v.strip() if v is not None else v

    @field_validator('username')
    @classmethod
    def _username(cls, v):
        if v is None:
            return v
        return _min_length(v.strip(), 3, 'Usuário deve ter pelo menos 3 caracteres')


class UserSettingsUpdate(Payload):
    church_name: Optional[str] = Field(None, alias='churchName', max_length=255)


# ============================================================================
# Announcements, support, system settings
# ============================================================================

class AnnouncementCreate(Payload):
    type: Literal['image', 'video', 'text']
    title: str
    content: str = ''
    image_url: Optional[str] = Field(None, alias='imageUrl')
    video_url: Optional[str] = Field(None, alias='videoUrl')
    active: bool = True

    @field_validator('title')
    @classmethod
    def _title(cls, v):
        return _min_length(v.strip(), 1, 'Título obrigatório')


class AnnouncementUpdate(Payload):
    type: Optional[Literal['image', 'video', 'text']] = None
    title: Optional[str] = None
    content: Optional[str] = None
    image_url: Optional[str] = Field(None, alias='imageUrl')
    video_url: Optional[str] = Field(None, alias='videoUrl')
    active: Optional[bool] = None

    @field_validator('title')
    @classmethod
    def _title(cls, v):
        if v is None:
            return v
        return _min_length(v.strip(), 1, 'Título obrigatório')


class SupportTicketCreate(Payload):
    username: str = ''
    email: str = ''
    phone: str = ''
    subject: str = ''
    message: str = ''

    @field_validator('username', 'phone', 'subject', 'message')
    @classmethod
    def _required(cls, v):
        return _min_length(v.strip(), 1, 'Preencha todos os campos')

    @field_validator('email')
    @classmethod
    def _email(cls, v):
        if not EMAIL_RE.match(v.strip()):
            raise PydanticCustomError('email', 'Email inválido')
        return v.strip()


class SupportTicketUpdate(Payload):
    status: Optional[Literal['pending', 'in_progress', 'resolved', 'closed']] = None
    admin_response: Optional[str] = Field(None, alias='adminResponse')


class SystemSettingsUpdate(Payload):
    slideshow_interval: int = Field(alias='slideshowInterval', ge=1000, le=600000)


# ============================================================================
# Workspace
# ============================================================================

class TextSlideCreate(Payload):
    title: str = ''
    content: str = ''
    color: Optional[str] = None
    background_color: Optional[str] = Field(None, alias='backgroundColor')
    bold: bool = False
    italic: bool = False
    underline: bool = False
    size: Optional[int] = Field(None, ge=8, le=400)
    formatted_content: Optional[str] = Field(None, alias='formattedContent')

    @model_validator(mode='after')
    def _has_text(self):
        if not self.title.strip() and not self.content.strip():
            raise PydanticCustomError('empty_slide', 'Informe um título ou conteúdo')
        return self


class GalleryItemUpdate(Payload):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    duration: Optional[float] = Field(None, ge=0)
    text_title: Optional[str] = Field(None, alias='textTitle')
    text_content: Optional[str] = Field(None, alias='textContent')
    text_color: Optional[str] = Field(None, alias='textColor')
    text_background_color: Optional[str] = Field(None, alias='textBackgroundColor')
    text_bold: Optional[bool] = Field(None, alias='textBold')
    text_italic: Optional[bool] = Field(None, alias='textItalic')
    text_underline: Optional[bool] = Field(None, alias='textUnderline')
    text_size: Optional[int] = Field(None, alias='textSize', ge=8, le=400)
    formatted_content: Optional[str] = Field(None, alias='formattedContent')


class PlaylistAdd(Payload):
    gallery_item_id: int = Field(alias='galleryItemId')


class PlaylistOrder(Payload):
    item_ids: List[int] = Field(alias='itemIds')


class PlaylistSettingsUpdate(Payload):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    loop: Optional[bool] = None
    auto_play_interval: Optional[int] = Field(None, alias='autoPlayInterval', ge=1, le=3600)


class GotoRequest(Payload):
    index: int = Field(ge=0)


class ThemePayload(Payload):
    name: str = Field(min_length=1, max_length=100)
    font_family: str = Field('Arial Black, Impact, sans-serif', alias='fontFamily')
    font_size: int = Field(72, alias='fontSize', ge=8, le=400)
    font_weight: str = Field('900', alias='fontWeight')
    color: str = '#000000'
    text_align: Literal['left', 'center', 'right'] = Field('center', alias='textAlign')
    text_shadow: str = Field('none', alias='textShadow')
    background_color: str = Field('transparent', alias='backgroundColor')
    padding: int = Field(0, ge=0, le=500)


class ThemeUpdate(Payload):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    font_family: Optional[str] = Field(None, alias='fontFamily')
    font_size: Optional[int] = Field(None, alias='fontSize', ge=8, le=400)
    font_weight: Optional[str] = Field(None, alias='fontWeight')
    color: Optional[str] = None
    text_align: Optional[Literal['left', 'center', 'right']] = Field(None, alias='textAlign')
    text_shadow: Optional[str] = Field(None, alias='textShadow')
    background_color: Optional[str] = Field(None, alias='backgroundColor')
    padding: Optional[int] = Field(None, ge=0, le=500)


class ProjectorStateUpdate(Payload):
    volume: Optional[int] = Field(None, ge=0, le=100)
    muted: Optional[bool] = None
    show_projector: Optional[bool] = Field(None, alias='showProjector')
    fit_mode: Optional[Literal['contain', 'cover', 'stretch', 'crop']] = Field(None, alias='fitMode')
    zoom: Optional[float] = Field(None, ge=0.1, le=5)
    pan_x: Optional[float] = Field(None, alias='panX', ge=-100, le=100)
    pan_y: Optional[float] = Field(None, alias='panY', ge=-100, le=100)
    slide_duration: Optional[int] = Field(None, alias='slideDuration', ge=1, le=3600)
    text_font_size: Optional[int] = Field(None, alias='textFontSize', ge=8, le=400)
    auto_fit_text: Optional[bool] = Field(None, alias='autoFitText')
    dark_screen: Optional[bool] = Field(None, alias='darkScreen')
    black_screen: Optional[bool] = Field(None, alias='blackScreen')
    show_logo: Optional[bool] = Field(None, alias='showLogo')
    logo_url: Optional[str] = Field(None, alias='logoUrl', max_length=1000)
    is_live: Optional[bool] = Field(None, alias='isLive')
    continuous_play: Optional[bool] = Field(None, alias='continuousPlay')
    loop_current_video: Optional[bool] = Field(None, alias='loopCurrentVideo')
    waiting_message_title: Optional[str] = Field(None, alias='waitingMessageTitle', max_length=255)
    waiting_message_subtitle: Optional[str] = Field(None, alias='waitingMessageSubtitle', max_length=255)
    theme_id: Optional[int | Literal['default']] = Field(None, alias='themeId')


class OverlayPosition(Payload):
    x: float = Field(ge=0, le=100)
    y: float = Field(ge=0, le=100)


class OverlayUpdate(Payload):
    title: Optional[str] = Field(None, max_length=500)
    subtitle: Optional[str] = Field(None, max_length=500)
    content: Optional[str] = None
    position: Optional[OverlayPosition] = None
    visible: Optional[bool] = None


class LiveToggle(Payload):
    is_live: bool = Field(alias='isLive')


# ============================================================================
# Backup documents
# ============================================================================

class BackupGalleryItem(Payload):
    id: int | str
    type: Literal['image', 'video', 'audio', 'text']
    name: str = Field(min_length=1, max_length=255)
    mime_type: Optional[str] = Field(None, alias='mimeType')
    duration: Optional[float] = Field(None, ge=0)
    text_title: Optional[str] = Field(None, alias='textTitle')
    text_content: Optional[str] = Field(None, alias='textContent')
    text_color: Optional[str] = Field(None, alias='textColor')
    text_background_color: Optional[str] = Field(None, alias='textBackgroundColor')
    text_bold: bool = Field(False, alias='textBold')
    text_italic: bool = Field(False, alias='textItalic')
    text_underline: bool = Field(False, alias='textUnderline')
    text_size: Optional[int] = Field(None, alias='textSize')
    formatted_content: Optional[str] = Field(None, alias='formattedContent')
    blob_data: Optional[str] = Field(None, alias='blobData')


class BackupPlaylistItem(Payload):
    id: int | str
    gallery_item_id: int | str = Field(alias='galleryItemId')
    order: int = 0


class BackupPlaylist(Payload):
    name: str = 'Culto'
    loop: bool = False
    auto_play_interval: Optional[int] = Field(None, alias='autoPlayInterval', ge=1, le=3600)


class BackupTheme(ThemePayload):
    id: int | str


class BackupDocument(Payload):
    version: int
    gallery_items: List[BackupGalleryItem] = Field(default_factory=list, alias='galleryItems')
    playlist_items: List[BackupPlaylistItem] = Field(default_factory=list, alias='playlistItems')
    playlists: List[BackupPlaylist] = Field(default_factory=list)
    themes: List[BackupTheme] = Field(default_factory=list)
    settings: Optional[ProjectorStateUpdate] = None
    logo_blob_data: Optional[str] = Field(None, alias='logoBlobData')
    current_theme: Optional[BackupTheme] = Field(None, alias='currentTheme')
