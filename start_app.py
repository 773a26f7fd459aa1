#!/usr/bin/env python
"""Start the dropsync FastAPI application on $PORT (default 8000)."""
import os

import uvicorn

if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8000))

    print(f"Starting dropsync on port {port}")

    uvicorn.run(
        "dropsync.main:app",
        host="0.0.0.0",
        port=port,
        log_level="info"
    )
