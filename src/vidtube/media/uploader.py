"""
Media host client (Cloudinary upload API).

Uploads are best-effort from the caller's point of view: `upload()` returns None on
any failure and never raises for delivery problems. The local file is always removed
once the attempt is over, whatever the outcome.
"""

from __future__ import annotations

import hashlib
import json
import mimetypes
import time
import urllib.error
import urllib.request
import uuid
from contextlib import suppress
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from fastapi import UploadFile

from vidtube.api.errors import ValidationError
from vidtube.config import Settings, get_settings
from vidtube.utils.log import logger
from vidtube.utils.retry import retry_call


@dataclass(frozen=True, slots=True)
class UploadResult:
    url: str
    public_id: str


class UploadFailed(RuntimeError):
    """Transient failure; worth another attempt."""


class UploadRejected(RuntimeError):
    """The media host refused the file; retrying will not help."""


def _sign(params: dict[str, str], api_secret: str) -> str:
    # Cloudinary signature: sha1 over "k=v&k2=v2" (sorted, excluding file/api_key) + secret.
    to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params))
    return hashlib.sha1((to_sign + api_secret).encode("utf-8")).hexdigest()


def _encode_multipart(fields: dict[str, str], *, file_field: str, path: Path) -> tuple[bytes, str]:
    boundary = f"----vidtube{uuid.uuid4().hex}"
    ctype = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    parts: list[bytes] = []
    for k, v in fields.items():
        parts.append(
            (
                f"--{boundary}\r\n"
                f'Content-Disposition: form-data; name="{k}"\r\n\r\n'
                f"{v}\r\n"
            ).encode()
        )
    parts.append(
        (
            f"--{boundary}\r\n"
            f'Content-Disposition: form-data; name="{file_field}"; filename="{path.name}"\r\n'
            f"Content-Type: {ctype}\r\n\r\n"
        ).encode()
    )
    parts.append(path.read_bytes())
    parts.append(f"\r\n--{boundary}--\r\n".encode())
    return b"".join(parts), f"multipart/form-data; boundary={boundary}"


class MediaUploader:
    """
    Pushes a local file to the media host and cleans it up afterwards.

    Credentials come from the Settings object handed in at startup.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        s = settings or get_settings()
        self._cloud_name = str(s.cloudinary_cloud_name or "").strip()
        self._base_url = str(s.cloudinary_upload_url or "").rstrip("/")
        self._api_key = str(s.cloudinary_api_key or "").strip()
        sec = s.cloudinary_api_secret
        self._api_secret = sec.get_secret_value() if sec is not None else ""
        self._timeout = float(s.upload_timeout_sec)
        self._retries = max(0, int(s.upload_retries))

    @property
    def configured(self) -> bool:
        return bool(self._cloud_name and self._api_key and self._api_secret)

    def _endpoint(self) -> str:
        return f"{self._base_url}/{self._cloud_name}/auto/upload"

    def _post(self, path: Path) -> dict[str, Any]:
        params = {"timestamp": str(int(time.time()))}
        fields = dict(params)
        fields["api_key"] = self._api_key
        fields["signature"] = _sign(params, self._api_secret)
        body, ctype = _encode_multipart(fields, file_field="file", path=path)

        req = urllib.request.Request(self._endpoint(), data=body, method="POST")
        req.add_header("Content-Type", ctype)
        req.add_header("Accept", "application/json")
        try:
            with urllib.request.urlopen(req, timeout=self._timeout) as resp:  # nosec B310
                raw = resp.read()
        except urllib.error.HTTPError as ex:
            if ex.code in {408, 425, 429} or ex.code >= 500:
                raise UploadFailed(f"media host status {ex.code}") from ex
            raise UploadRejected(f"media host status {ex.code}") from ex
        data = json.loads(raw.decode("utf-8") or "{}")
        if not isinstance(data, dict):
            raise UploadFailed("media host returned non-object JSON")
        return data

    def upload(self, local_path: str | Path | None) -> UploadResult | None:
        if not local_path:
            return None
        path = Path(local_path)
        try:
            if not path.is_file():
                logger.warning("upload_missing_file", file=path.name)
                return None
            if not self.configured:
                logger.warning("upload_not_configured")
                return None
            try:
                data = retry_call(
                    lambda: self._post(path),
                    retries=self._retries,
                    retry_on=(UploadFailed, urllib.error.URLError, TimeoutError),
                    on_retry=lambda n, delay, ex: logger.info(
                        "upload_retry", attempt=n, delay_s=round(delay, 2), error=type(ex).__name__
                    ),
                )
            except (
                UploadFailed,
                UploadRejected,
                urllib.error.URLError,
                TimeoutError,
                OSError,
                ValueError,
            ) as ex:
                logger.warning("upload_failed", file=path.name, error=type(ex).__name__)
                return None
            url = str(data.get("secure_url") or data.get("url") or "")
            if not url:
                logger.warning("upload_failed", file=path.name, error="missing_url")
                return None
            logger.info("upload_ok", public_id=str(data.get("public_id") or ""))
            return UploadResult(url=url, public_id=str(data.get("public_id") or ""))
        finally:
            with suppress(FileNotFoundError):
                path.unlink()


async def stage_upload(upload: UploadFile, *, field: str) -> Path:
    """
    Write a multipart file into the temp dir, enforcing MAX_UPLOAD_MB.

    The caller owns the returned path (the uploader deletes it).
    """
    s = get_settings()
    limit = int(s.max_upload_mb) * 1024 * 1024
    temp_dir = s.resolved_temp_dir()
    temp_dir.mkdir(parents=True, exist_ok=True)
    name = upload.filename or ""
    ext = (("." + name.rsplit(".", 1)[-1]) if "." in name else "").lower()[:8]
    dest = temp_dir / f"{field}_{uuid.uuid4().hex}{ext}"
    written = 0
    try:
        with dest.open("wb") as f:
            while True:
                chunk = await upload.read(1024 * 1024)
                if not chunk:
                    break
                written += len(chunk)
                if written > limit:
                    raise ValidationError(f"{field} exceeds {int(s.max_upload_mb)} MB")
                f.write(chunk)
    except BaseException:
        with suppress(FileNotFoundError):
            dest.unlink()
        raise
    if written == 0:
        with suppress(FileNotFoundError):
            dest.unlink()
        raise ValidationError(f"{field} file is empty")
    return dest
