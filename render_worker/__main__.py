import uvicorn

from render_worker.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run("render_worker.main:app", host=settings.host, port=settings.port, log_level="info")


if __name__ == "__main__":
    main()
