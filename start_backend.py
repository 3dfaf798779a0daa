#!/usr/bin/env python3
"""
Markup Engine Backend Server
Starts the FastAPI application with uvicorn
"""

import os
import sys
import subprocess
from pathlib import Path

def main():
    """Start the markup engine backend server"""

    # Check if we're in the correct directory
    project_root = Path(__file__).parent
    if not (project_root / "app" / "main.py").exists():
        print("❌ Error: Please run this script from the project root directory")
        sys.exit(1)

    host = os.getenv("HOST", "0.0.0.0")
    port = os.getenv("PORT", "8000")

    print("🚀 Starting Markup Engine Backend Server...")
    print("📡 Features: Markup blocks, Cost records, Price simulator")
    print(f"🎯 Server: http://localhost:{port}/")
    print(f"📚 API Docs: http://localhost:{port}/docs")
    print("🛑 Press Ctrl+C to stop the server")
    print("------------------------------------------------------------")

    command = [
        sys.executable, "-m", "uvicorn",
        "app.main:app",
        "--host", host,
        "--port", port,
    ]
    if os.getenv("RELOAD", "true").lower() == "true":
        command.append("--reload")

    try:
        subprocess.run(command, check=True)
    except KeyboardInterrupt:
        print("\n🛑 Server stopped by user")
    except subprocess.CalledProcessError as e:
        print(f"❌ Error starting server: {e}")
        sys.exit(1)

if __name__ == "__main__":
    main()
