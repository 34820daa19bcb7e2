import os

import uvicorn


def main():
    uvicorn.run(
        "bookstore.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "5000")),
        reload=os.getenv("APP_ENV", "development") == "development",
    )


if __name__ == "__main__":
    main()
