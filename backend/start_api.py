#!/usr/bin/env python3
"""
Syncly API Startup Script

Starts the Syncly FastAPI server (app factory) with auto-reload for local work.
"""

import sys
from pathlib import Path

import uvicorn


def main():
    """Start the Syncly API server."""
    print("Starting Syncly API Server...")
    print("Documentation will be available at:")
    print("   Swagger UI:  http://localhost:8000/docs")
    print("   ReDoc:       http://localhost:8000/redoc")
    print("   Admin Panel: http://localhost:8000/admin")
    print("")

    env_file = Path(".env")
    if not env_file.exists():
        print("WARNING: No .env file found!")
        print("   Run `python generate_keys.py` and set at least:")
        print("   DATABASE_URL, JWT_SECRET, TOKEN_ENCRYPTION_KEY, OPENAI_API_KEY")
        print("")

    try:
        uvicorn.run(
            "syncly.main:create_app",
            factory=True,
            host="0.0.0.0",
            port=8000,
            reload=True,
            reload_dirs=["syncly"],
            log_level="info",
        )
    except KeyboardInterrupt:
        print("\nShutting down Syncly API server...")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
