"""Run the app with uvicorn: ``python -m todo_app``."""
import uvicorn

from . import config


def main() -> None:
    uvicorn.run('todo_app.main:app', host=config.HOST, port=config.PORT, log_level=config.LOG_LEVEL.lower())


if __name__ == '__main__':
    main()
