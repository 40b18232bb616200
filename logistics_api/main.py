from uvicorn import run

from logistics_api.settings import get_settings


def main():
    settings = get_settings()
    run(
        "logistics_api.app:app",
        host=settings.SERVER.HOST,
        port=settings.SERVER.PORT,
        workers=settings.SERVER.WORKERS,
        reload=settings.SERVER.RELOAD,
        reload_dirs=["logistics_api"],
        reload_excludes=["__pycache__", "*.pyc"],
        reload_includes=["*.py"],
    )


if __name__ == "__main__":
    main()
