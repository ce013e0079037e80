"""
Ride Dispatch Backend
=====================
Entry point for the rider / driver / dispatcher API.

Run with ``uvicorn main:app --reload`` or ``python main.py``.
Database schema: ``alembic upgrade head``; sample data: ``python seed.py``.
"""

import uvicorn

from ridehail.api.app import create_app

app = create_app()

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
