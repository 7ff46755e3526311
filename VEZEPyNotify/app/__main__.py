import uvicorn

from .config import load_settings
from .logs import configure_logging
from .main import create_app


def main() -> None:
    settings = load_settings()
    configure_logging(settings.log_level)
    # uvicorn handles SIGTERM/SIGINT and runs the lifespan shutdown
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
