"""
SwiftRide Ride Ledger
=====================
Entry point. Run with: uvicorn main:app --reload
"""

import uvicorn

from seed import seed
from src.api.app import build_ledger, create_app
from src.config import settings
from src.infrastructure.repositories import UserRepository

users = UserRepository()
ledger = build_ledger(users)
if settings.seed_mock_data:
    seed(ledger, users)

app = create_app(ledger=ledger, users=users)

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
