"""
QR Token Module - Classroom QR Attendance

This module defines the payload a lecturer embeds in an attendance QR code,
its validity predicate, and the strict parser used at the scanning boundary.
It also renders payloads into QR code images for display in class.

Features:
- Token validity check against an absolute expiry
- Strict payload parsing into ParsedToken | ParseError
- Compact JSON payload encoding
- QR code image generation (base64 PNG)
- Optional course caption under the QR code
"""

import base64
import io
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Union

import qrcode
from PIL import Image, ImageDraw, ImageFont

from attendance_app.modules.timeutils import ensure_utc, format_timestamp, parse_timestamp


@dataclass(frozen=True)
class QRToken:
    """Payload of an attendance QR code."""
    session_id: str
    course_id: str
    course_code: str = ''
    expires_at: Optional[datetime] = None


# A successfully parsed payload is just a token with a validated shape.
ParsedToken = QRToken


@dataclass(frozen=True)
class ParseError:
    """Result of a payload that could not be parsed into a QRToken."""
    message: str


def is_valid(token: QRToken, now: datetime) -> bool:
    """
    Check whether a token may still be used.

    Args:
        token (QRToken): Token to check
        now (datetime): Reference time

    Returns:
        bool: True iff ``now`` is strictly before ``token.expires_at``.
        Tokens without an expiry never expire.
    """
    if token.expires_at is None:
        return True
    return ensure_utc(now) < ensure_utc(token.expires_at)


def encode_token(token: QRToken) -> str:
    """Serialize a token to the compact JSON payload carried by the QR code."""
    payload: Dict[str, Any] = {
        'sessionId': token.session_id,
        'courseId': token.course_id,
        'courseCode': token.course_code,
    }
    if token.expires_at is not None:
        payload['expiresAt'] = format_timestamp(token.expires_at)
    return json.dumps(payload, separators=(',', ':'))


def parse_token(raw_payload: str) -> Union[ParsedToken, ParseError]:
    """
    Parse a scanned payload into a validated token.

    Args:
        raw_payload (str): Text decoded from the QR code

    Returns:
        ParsedToken on success, ParseError describing the first problem found
    """
    try:
        data = json.loads(raw_payload)
    except (TypeError, ValueError, RecursionError):
        return ParseError('Invalid QR code format')

    if not isinstance(data, dict):
        return ParseError('Invalid QR code format')

    for field in ('courseId', 'sessionId'):
        value = data.get(field)
        if not isinstance(value, str) or not value.strip():
            return ParseError(f'Missing required field: {field}')

    course_code = data.get('courseCode', '')
    if course_code is None:
        course_code = ''
    if not isinstance(course_code, str):
        return ParseError('Invalid field: courseCode')

    expires_at = None
    raw_expiry = data.get('expiresAt')
    if raw_expiry is not None:
        if not isinstance(raw_expiry, str):
            return ParseError('Invalid timestamp format')
        try:
            expires_at = parse_timestamp(raw_expiry)
        except (ValueError, OverflowError):
            return ParseError('Invalid timestamp format')

    return ParsedToken(
        session_id=data['sessionId'],
        course_id=data['courseId'],
        course_code=course_code,
        expires_at=expires_at
    )


class QRTokenIssuer:
    """
    Renders attendance tokens into QR code images for lecturers to display.
    """

    ERROR_CORRECTION = {
        'L': qrcode.constants.ERROR_CORRECT_L,
        'M': qrcode.constants.ERROR_CORRECT_M,
        'Q': qrcode.constants.ERROR_CORRECT_Q,
        'H': qrcode.constants.ERROR_CORRECT_H,
    }

    def __init__(self, box_size: int = 10, border: int = 4, error_correction: str = 'M'):
        """
        Initialize the issuer with QR rendering settings.

        Args:
            box_size (int): Size of each box in pixels
            border (int): Border width in boxes (minimum is 4)
            error_correction (str): One of L, M, Q, H
        """
        self.logger = logging.getLogger(__name__)
        self.settings = {
            'version': None,  # fit to payload
            'error_correction': self.ERROR_CORRECTION.get(
                error_correction.upper(), qrcode.constants.ERROR_CORRECT_M
            ),
            'box_size': box_size,
            'border': border,
            'fill_color': 'black',
            'back_color': 'white'
        }

    def render(self, token: QRToken, caption: Optional[str] = None) -> Dict[str, Any]:
        """
        Generate the QR code image for a token.

        Args:
            token (QRToken): Token to embed
            caption (str): Optional text drawn under the code

        Returns:
            Dict[str, Any]: payload string, base64 PNG and image size
        """
        payload = encode_token(token)

        qr = qrcode.QRCode(
            version=self.settings['version'],
            error_correction=self.settings['error_correction'],
            box_size=self.settings['box_size'],
            border=self.settings['border']
        )
        qr.add_data(payload)
        qr.make(fit=True)

        img = qr.make_image(
            fill_color=self.settings['fill_color'],
            back_color=self.settings['back_color']
        ).get_image()

        if caption:
            img = self._add_caption(img, caption)

        buffer = io.BytesIO()
        img.save(buffer, format='PNG')
        img_base64 = base64.b64encode(buffer.getvalue()).decode()

        self.logger.debug(f"QR code rendered for session {token.session_id}")
        return {
            'qr_data': payload,
            'image_base64': img_base64,
            'image_size': img.size
        }

    def _add_caption(self, qr_img: Image.Image, caption: str) -> Image.Image:
        width, height = qr_img.size
        canvas = Image.new('RGB', (width, height + 40), 'white')
        canvas.paste(qr_img, (0, 0))

        draw = ImageDraw.Draw(canvas)
        try:
            font = ImageFont.truetype("arial.ttf", 16)
        except (IOError, OSError):
            font = ImageFont.load_default()

        bbox = draw.textbbox((0, 0), caption, font=font)
        text_width = bbox[2] - bbox[0]
        draw.text(((width - text_width) // 2, height + 10), caption, fill='black', font=font)
        return canvas
