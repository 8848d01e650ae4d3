"""Run the API with uvicorn: `python -m academy`."""

import uvicorn

from .config import settings


def run():
    print(f"\nAcademy API: http://{settings.HOST}:{settings.PORT}\nAPI docs: http://{settings.HOST}:{settings.PORT}/docs\n")
    uvicorn.run("academy.main:app", host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
