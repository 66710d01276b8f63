# server.py
# Runs the Potencia chat backend (REST + WebSocket) under uvicorn.
# Use: python server.py   (settings come from the environment / .env)
import uvicorn

from backend.config import Settings
from backend.logger import configure_logging


def main():
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    uvicorn.run('backend.app:app', host=settings.host, port=settings.port,
                log_level=settings.log_level.lower())


if __name__ == '__main__':
    main()
