"""Client repository - Database operations for clients"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Client


class ClientRepository:
    """Repository for client database operations"""

    @staticmethod
    def get_client_by_id(db: Session, client_id: str) -> Optional[Client]:
        """Get a specific client by ID"""
        return db.query(Client).filter(Client.id == client_id).first()

    @staticmethod
    def create_client(db: Session, **client_data) -> Client:
        """Create a new client"""
        client = Client(**client_data)
        db.add(client)
        db.commit()
        db.refresh(client)
        return client

    @staticmethod
    def mark_confirmed(db: Session, client: Client, price_agreed: Decimal, confirmed_at: datetime) -> Client:
        """Move a lead to an active, confirmed customer"""
        client.is_confirmed = True
        client.confirmed_at = confirmed_at
        client.stage = 1
        client.status = "active"
        client.price_agreed = price_agreed

        db.commit()
        db.refresh(client)
        return client
