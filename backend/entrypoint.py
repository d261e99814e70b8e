"""
Run the registry API with uvicorn.
"""
import argparse

import uvicorn

from mywish.main import app


def main() -> None:
    parser = argparse.ArgumentParser(description="Gift registry API server")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
