#!/usr/bin/env python3
"""
Quick runner for MediatorMate Service
=====================================

Usage:
    python -m mediator_mate.run
    # or
    python mediator_mate/run.py

Listens on BACKEND_PORT (default 3001).
"""

import uvicorn

from mediator_mate.config import get_settings

if __name__ == "__main__":
    port = get_settings().backend_port
    print("Starting MediatorMate Service...")
    print(f"API docs: http://localhost:{port}/docs")
    print(f"Health:   http://localhost:{port}/health")
    print()

    uvicorn.run(
        "mediator_mate.api:app",
        host="0.0.0.0",
        port=port,
        reload=True
    )
