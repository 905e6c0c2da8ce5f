"""Authentication token codecs.

Safari echoes the ``authenticationToken`` from ``website.json`` back in the
``Authorization: ApplePushNotifications <token>`` header of registration
callbacks. Apple requires that token to be at least 16 characters long, so
short user ids are length-encoded and padded before they are embedded.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

AUTHORIZATION_SCHEME = "ApplePushNotifications"
PADDING_CHAR = "."
LENGTH_SEPARATOR = ":"


class TokenCodec(ABC):
    @abstractmethod
    def encode(self, user_id: str) -> str:
        raise NotImplementedError

    @abstractmethod
    def decode(self, token: str) -> str:
        """Return the user id, or an empty string if ``token`` is malformed."""
        raise NotImplementedError


class PlainTokenCodec(TokenCodec):
    def encode(self, user_id: str) -> str:
        return user_id

    def decode(self, token: str) -> str:
        return token


class PaddedTokenCodec(TokenCodec):
    """``<length>:<user id>`` right-padded with dots up to ``min_length``."""

    def __init__(self, min_length: int = 16) -> None:
        self.min_length = min_length

    def encode(self, user_id: str) -> str:
        token = f"{len(user_id)}{LENGTH_SEPARATOR}{user_id}"
        return token.ljust(self.min_length, PADDING_CHAR)

    def decode(self, token: str) -> str:
        length_text, separator, rest = token.partition(LENGTH_SEPARATOR)
        if not separator or not length_text.isdecimal():
            return ""
        length = int(length_text)
        if length == 0 or length > len(rest):
            return ""
        user_id, padding = rest[:length], rest[length:]
        if padding.strip(PADDING_CHAR):
            return ""
        return user_id


def build_token_codec(min_length: int) -> TokenCodec:
    if min_length > 0:
        return PaddedTokenCodec(min_length)
    return PlainTokenCodec()


def parse_authorization(raw_header: str, codec: TokenCodec) -> str:
    """Extract the user id from a raw ``Authorization`` header value.

    Only the scheme and the single space after it are removed; the credential
    is handed to the codec byte for byte.
    """
    value = raw_header or ""
    scheme, separator, credential = value.partition(" ")
    if scheme.lower() == AUTHORIZATION_SCHEME.lower():
        value = credential if separator else ""
    if not value.strip():
        return ""
    return codec.decode(value)
