from __future__ import annotations

from pathlib import Path

from vidtube.media.uploader import UploadResult

# Smallest thing that looks like a PNG to a content sniffer.
TINY_PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class FakeUploader:
    """In-process stand-in for the media host; deletes the file like the real one."""

    configured = True

    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.uploaded: list[str] = []

    def upload(self, local_path: str | Path | None) -> UploadResult | None:
        if not local_path:
            return None
        path = Path(local_path)
        try:
            if self.fail or not path.is_file():
                return None
            self.uploaded.append(path.name)
            return UploadResult(url=f"https://media.test/{path.name}", public_id=path.stem)
        finally:
            path.unlink(missing_ok=True)


def image_file(name: str = "avatar.png", data: bytes = TINY_PNG) -> tuple[str, bytes, str]:
    return (name, data, "image/png")
