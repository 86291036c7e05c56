import uvicorn

from finance_api.config import load_settings


def main() -> None:
    settings = load_settings()
    uvicorn.run(
        "finance_api.main:app",
        host="0.0.0.0",
        port=settings.port,
    )


if __name__ == "__main__":
    main()
