import uvicorn

from draftflow.application.api.server import create_app
from draftflow.config import get_settings


def main():
    settings = get_settings()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.bot_port)


if __name__ == "__main__":
    main()
