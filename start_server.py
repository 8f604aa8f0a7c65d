"""
Start the marketplace chat backend (HTTP API + Socket.IO namespaces)
"""
import sys

import uvicorn

if __name__ == "__main__":
    print("Starting Marketplace Chat Backend...")
    print(f"Python: {sys.version}")

    try:
        uvicorn.run(
            "app.main:asgi_app",
            host="127.0.0.1",
            port=8000,
            reload=True,
            log_level="info"
        )
    except KeyboardInterrupt:
        print("\nServer stopped by user")
    except Exception as e:
        print(f"\nError starting server: {e}")
        raise
