from __future__ import annotations
from core_config import get_settings
from core_utils.uvicorn_entry import run


def main() -> None:
    settings = get_settings()
    run(
        "campaign_api.app:app",
        port=settings.port,
        host=settings.host,
        log_level=settings.service_log_level.lower(),
    )


if __name__ == "__main__":
    main()
