"""
Run the service:  python -m impact_api   (or the `impact-api` script)
Host and port come from IMPACT_HOST / IMPACT_PORT.
"""
import uvicorn

from .config import load_settings


def main() -> None:
    settings = load_settings()
    uvicorn.run("impact_api.app:app", host=settings.host, port=settings.port,
                log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
