#!/usr/bin/env python3
"""
Multi-Device Acquisition Orchestrator - Main Application Entry Point.

============================================================
SINGLE ENTRYPOINT
============================================================
This is the ONE executable entry point for the orchestrator.

- Compatible with PM2 process management
- Can be started, stopped, and restarted safely
- Handles SIGINT / SIGTERM gracefully
- Exits 1 only when the Manager refuses to initialize

============================================================
USAGE
============================================================
Direct execution:
    python app.py

With PM2:
    pm2 start app.py --interpreter python --name plc-orchestrator -- --backend remote

Environment-based configuration:
    MANAGER_BACKEND=remote MANAGER_URL=http://localhost:3000 python app.py

============================================================
"""

import sys

from orchestrator.cli import main


# ============================================================
# ENTRY POINT
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
