"""Credential materialization.

Turns validated credentials into the files native tools expect, inside a
private directory owned by one lane invocation:

    with CredentialMaterializer(lane_name="android-release") as materializer:
        keystore = materializer.keystore(credentials.keystore)
        ...
    # every file created above is gone here, on success and on failure

Binary secrets are decoded fully in memory before any file is opened and are
written in binary mode, so a malformed secret leaves nothing on disk and a
valid one is reproduced byte for byte.
"""

from __future__ import annotations

import base64
import binascii
import json
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from types import TracebackType
from typing import Literal

from mr.platform.files import write_private_bytes
from mr.services.environment import KeystoreBlob, KeystorePath, KeystoreSource
from mr.services.lane_errors import CredentialDecodeError

__all__ = ["CredentialMaterializer", "EphemeralCredentialFile"]

KEYSTORE_FILENAME = "release.keystore"
API_KEY_FILENAME = "app_store_connect_api_key.json"

# fastlane accepts at most 1200 seconds for App Store Connect tokens.
API_KEY_TOKEN_DURATION = 1200

_JKS_MAGIC = b"\xfe\xed\xfe\xed"
_DER_SEQUENCE = 0x30

CredentialKind = Literal["keystore", "api_key"]
SourceEncoding = Literal["base64", "raw"]


@dataclass(frozen=True, slots=True)
class EphemeralCredentialFile:
    """A credential file handed to a native tool.

    Attributes:
        kind: What the file holds.
        source_encoding: How the secret arrived (base64 blob or raw value/path).
        path: Location on disk.
        owned: True if this lane created the file and must delete it. A
            keystore referenced by path is never owned.
    """

    kind: CredentialKind
    source_encoding: SourceEncoding
    path: Path
    owned: bool = True


class CredentialMaterializer:
    """Writes credential files for one lane and removes them on exit.

    The private directory is created lazily on the first write, so a lane that
    fails validation never touches the filesystem. Each instance gets its own
    directory, which keeps concurrent lanes on one host apart.
    """

    def __init__(self, *, lane_name: str, base_dir: Path | None = None) -> None:
        self._lane_name = lane_name
        self._base_dir = base_dir
        self._dir: Path | None = None
        self._files: list[EphemeralCredentialFile] = []
        self._closed = False

    def __enter__(self) -> CredentialMaterializer:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def files(self) -> tuple[EphemeralCredentialFile, ...]:
        return tuple(self._files)

    @property
    def directory(self) -> Path:
        """The lane's private directory (created on first access)."""
        if self._closed:
            raise RuntimeError("credential materializer is closed")
        if self._dir is None:
            # mkdtemp creates the directory with mode 0700.
            self._dir = Path(tempfile.mkdtemp(prefix=f"mr-{self._lane_name}-", dir=self._base_dir))
        return self._dir

    def keystore(self, source: KeystoreSource) -> EphemeralCredentialFile:
        """Provide the Android keystore as a file.

        Raises:
            CredentialDecodeError: if the base64 blob is malformed or does not
                decode to a JKS / PKCS#12 keystore.
        """
        match source:
            case KeystorePath(path=path):
                record = EphemeralCredentialFile("keystore", "raw", path, owned=False)
                self._files.append(record)
                return record
            case KeystoreBlob(encoded=encoded, variable=variable):
                data = decode_keystore(encoded, source=variable)
                path = self._write(KEYSTORE_FILENAME, data)
                record = EphemeralCredentialFile("keystore", "base64", path)
                self._files.append(record)
                return record

    def api_key(self, *, key_id: str, issuer_id: str, key: str) -> EphemeralCredentialFile:
        """Write the App Store Connect key in fastlane's ``api_key_path`` format."""
        payload = {
            "key_id": key_id,
            "issuer_id": issuer_id,
            "key": key,
            "duration": API_KEY_TOKEN_DURATION,
            "in_house": False,
        }
        data = json.dumps(payload, indent=2).encode("utf-8")
        path = self._write(API_KEY_FILENAME, data)
        record = EphemeralCredentialFile("api_key", "raw", path)
        self._files.append(record)
        return record

    def close(self) -> None:
        """Delete every owned file and the private directory. Idempotent."""
        if self._closed:
            return
        self._closed = True
        for record in self._files:
            if record.owned:
                record.path.unlink(missing_ok=True)
        self._files.clear()
        if self._dir is not None and self._dir.exists():
            shutil.rmtree(self._dir)
        self._dir = None

    def _write(self, name: str, data: bytes) -> Path:
        path = self.directory / name
        write_private_bytes(path, data)
        return path


def decode_keystore(encoded: str, *, source: str) -> bytes:
    """Strictly decode a base64 keystore.

    Whitespace (CI secret stores often wrap long values) is ignored; any other
    non-alphabet character is an error.
    """
    compact = "".join(encoded.split())
    try:
        data = base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as e:
        raise CredentialDecodeError(source=source, reason=f"invalid base64: {e}") from e

    if not data:
        raise CredentialDecodeError(source=source, reason="decoded to zero bytes")
    if not (data.startswith(_JKS_MAGIC) or data[0] == _DER_SEQUENCE):
        raise CredentialDecodeError(source=source, reason="not a JKS or PKCS#12 keystore")
    return data
