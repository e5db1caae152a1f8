import asyncio
import os
import sys

from hypercorn.asyncio import serve
from hypercorn.config import Config

import fakeman.main
import tfforeman.logstreams

if __name__ == "__main__":  # codecov-skip
    try:
        tfforeman.logstreams.setup("info", name="fakeman")
        cfg = Config()
        host = os.getenv("FAKEMAN_HOST", "0.0.0.0")
        port = os.getenv("FAKEMAN_PORT", "3000")
        cfg.bind = [f"{host}:{port}"]
        asyncio.run(serve(fakeman.main.make_app(), cfg))  # type: ignore
    except KeyboardInterrupt:
        print("User abort")
        sys.exit(1)
