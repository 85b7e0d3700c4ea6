"""
RUN SCRIPT - Start the N.O.V.A relay
====================================

PURPOSE:
  Single entry point to start the relay. The relay keeps no state between
  requests, so you can run as many copies as you like behind a load balancer.

WHAT IT DOES:
  - Runs nova_relay.main:app with uvicorn on NOVA_HOST:NOVA_PORT (default 0.0.0.0:8000).
  - reload=True restarts the server when Python files change (development).

USAGE:
  python run.py

  Then talk to it with: python chat_cli.py
  API docs: http://localhost:8000/docs

NOTE:
  Before running, set GROQ_API_KEY in .env.
"""

import uvicorn

from config import HOST, PORT

# ------------------------------------------------------------------------------
# ENTRY POINT
# ------------------------------------------------------------------------------
if __name__ == "__main__":
    uvicorn.run(
        "nova_relay.main:app",   # String path to the FastAPI app instance (module:variable).
        host=HOST,               # 0.0.0.0 by default so other devices can connect.
        port=PORT,
        reload=True              # Auto-restart when .py files change (useful during development).
    )
