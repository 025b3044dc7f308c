"""
SciCalc: Entry point.

Serve the calculator backend with uvicorn.
"""

import logging
import os

import uvicorn
from dotenv import load_dotenv


def main() -> None:
    load_dotenv()
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "backend.app.main:app",
        host=os.getenv("SCICALC_HOST", "127.0.0.1"),
        port=int(os.getenv("SCICALC_PORT", "8000")),
    )


if __name__ == "__main__":
    main()
