from __future__ import annotations

import uvicorn

from vidtube.config import get_settings


def main() -> None:
    s = get_settings()
    uvicorn.run(
        "vidtube.server:app",
        host=str(s.host),
        port=int(s.port),
        log_level=str(s.log_level or "info").lower(),
        reload=False,
    )


if __name__ == "__main__":  # pragma: no cover
    main()
