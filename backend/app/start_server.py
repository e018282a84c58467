"""
Startup script for the Browser Sequence Memory backend.
On Windows this MUST be run instead of 'uvicorn main:app'.
"""

import sys
import os
import asyncio

# Force unbuffered output
os.environ['PYTHONUNBUFFERED'] = '1'

# Set Windows event loop policy FIRST, before any imports
if sys.platform == 'win32':
    print(" Detected Windows - Setting ProactorEventLoop policy...", flush=True)
    asyncio.set_event_loop_policy(asyncio.WindowsProactorEventLoopPolicy())


def main():
    import uvicorn

    host = os.getenv("MEMORY_API_HOST", "127.0.0.1")
    port = int(os.getenv("MEMORY_API_PORT", "8000"))

    print("\n Starting Browser Sequence Memory Server...", flush=True)
    print(f" Server will run on: http://{host}:{port}", flush=True)
    print(f" API Docs available at: http://{host}:{port}/docs", flush=True)
    print("\n" + "="*50, flush=True)

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=False,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
        access_log=True
    )


if __name__ == "__main__":
    main()
