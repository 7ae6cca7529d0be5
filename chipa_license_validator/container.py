"""
Encrypted ``.chipa`` containers.

A container file starts with a two-byte big-endian format version. The rest
is a Fernet token over a JSON document holding that version and the payload.
The Fernet key is derived from a caller-supplied secret, usually the token
returned by a successful license validation, so only a licensed application
can read the file back.
"""

import base64
import hashlib
import json
import logging
import struct
from pathlib import Path
from typing import Any, Optional, Type, TypeVar, Union

from cryptography.fernet import Fernet, InvalidToken
from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

EXTENSION = ".chipa"
CURRENT_VERSION = 1
SUPPORTED_VERSIONS = frozenset({CURRENT_VERSION})

_HEADER = struct.Struct(">H")

ModelT = TypeVar("ModelT", bound=BaseModel)
PathLike = Union[str, Path]


class ChipaError(Exception):
    """Base class for container errors."""

    prefix = "Chipa error"

    def __init__(self, message: str):
        super().__init__(f"{self.prefix}, {message}")


class EncodeError(ChipaError):
    prefix = "Encode error"


class DecodeError(ChipaError):
    prefix = "Decode error"


class EncryptionError(ChipaError):
    prefix = "Encryption error"


class DecryptionError(ChipaError):
    prefix = "Decryption error"


class FileCreationError(ChipaError):
    prefix = "File creation error, couldn't create .chipa file"


class InvalidFileFormatError(ChipaError):
    prefix = "Invalid file format"


def _fernet(key: str) -> Fernet:
    if not isinstance(key, str) or not key:
        raise EncryptionError("key must be a non-empty string")
    digest = hashlib.sha256(key.encode("utf-8")).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


def _encode(data: Any) -> bytes:
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    try:
        return json.dumps(data, separators=(",", ":"), allow_nan=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise EncodeError(str(e)) from e


def _decode(raw: bytes) -> Any:
    try:
        return json.loads(raw)
    except ValueError as e:
        raise DecodeError(str(e)) from e


class ChipaFile:
    """
    A versioned payload that can be written to and read from an encrypted
    ``.chipa`` file.

    Payloads are anything JSON can represent, or a pydantic model (stored as
    its JSON dump). Example::

        token = await client.validate_license(license, "my-app")
        ChipaFile.new({"seats": 5}).save("settings", token)   # writes settings.chipa
        ChipaFile.load("settings.chipa", token).read()        # {"seats": 5}
    """

    def __init__(self, version: int, body: bytes):
        if version not in SUPPORTED_VERSIONS:
            raise InvalidFileFormatError(f"unsupported container version {version}")
        self._version = version
        self._body = body

    @classmethod
    def new(cls, data: Any, version: int = CURRENT_VERSION) -> "ChipaFile":
        return cls(version, _encode(data))

    @property
    def version(self) -> int:
        return self._version

    def read(self, model: Optional[Type[ModelT]] = None) -> Any:
        """
        Return the payload, validated into ``model`` when one is given.
        """
        data = _decode(self._body)
        if model is None:
            return data
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise DecodeError(f"payload does not match {model.__name__}: {e.error_count()} invalid field(s)") from e

    def write(self, data: Any) -> None:
        """Replace the payload."""
        self._body = _encode(data)

    def save(self, path: PathLike, key: str) -> Path:
        """
        Encrypt the container under ``key`` and write it to ``path``.

        The extension is forced to ``.chipa``; the path actually written is
        returned. An existing file is overwritten.
        """
        path = Path(path)
        if path.suffix != EXTENSION:
            path = path.with_suffix(EXTENSION)

        document = _encode({"version": self._version, "body": self._body.decode("utf-8")})
        token = _fernet(key).encrypt(document)

        try:
            path.write_bytes(_HEADER.pack(self._version) + token)
        except OSError as e:
            raise FileCreationError(str(e)) from e

        logger.debug("Wrote container version %d to %s", self._version, path)
        return path

    @classmethod
    def load(cls, path: PathLike, key: str) -> "ChipaFile":
        """
        Read and decrypt the container at ``path``.

        Raises:
            InvalidFileFormatError: the path does not end in ``.chipa``, the
                file is too small, or its version is unknown
            DecryptionError: ``key`` is wrong or the file was tampered with
            FileCreationError: the file cannot be read
        """
        path = Path(path)
        if path.suffix != EXTENSION:
            raise InvalidFileFormatError(
                f"expected file to end with {EXTENSION}, found {path.suffix or 'none'!r}"
            )

        try:
            raw = path.read_bytes()
        except OSError as e:
            raise FileCreationError(str(e)) from e

        if len(raw) < _HEADER.size:
            raise InvalidFileFormatError("file is too small")

        (version,) = _HEADER.unpack(raw[:_HEADER.size])
        if version not in SUPPORTED_VERSIONS:
            raise InvalidFileFormatError(f"unsupported container version {version}")

        try:
            document = _fernet(key).decrypt(raw[_HEADER.size:])
        except InvalidToken:
            raise DecryptionError("wrong key or corrupted file") from None

        contents = _decode(document)
        if (
            not isinstance(contents, dict)
            or contents.get("version") != version
            or not isinstance(contents.get("body"), str)
        ):
            raise InvalidFileFormatError("container contents do not match its header")

        return cls(version, contents["body"].encode("utf-8"))

    def __repr__(self) -> str:
        return f"ChipaFile(version={self._version}, size={len(self._body)})"
