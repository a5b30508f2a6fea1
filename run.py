#!/usr/bin/env python3
"""
Financing Engine Entry Point

Starts the FastAPI server with the financing engine.
"""

import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from financing_engine.api import run_server
from financing_engine.config import get_config


if __name__ == "__main__":
    config = get_config()
    print("Starting Financing Engine...")
    print(f"Storage backend: {config.storage_backend}")
    print(f"API available at: http://localhost:{config.api_port}")
    print(f"Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        run_server(debug=False)
    except KeyboardInterrupt:
        print("\nShutting down Financing Engine...")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)
