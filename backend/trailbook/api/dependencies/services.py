# backend/trailbook/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

Each request gets services bound to its own database session.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ...database import get_db
from ...services.connection_request_service import ConnectionRequestService
from ...services.eligibility_service import EligibilityService
from ...services.message_service import MessageService
from ...services.messaging import ChatGateway, get_chat_gateway
from ...services.trail_connection_service import TrailConnectionService


def get_connection_request_service(db: Session = Depends(get_db)) -> ConnectionRequestService:
    return ConnectionRequestService(db)


def get_eligibility_service(db: Session = Depends(get_db)) -> EligibilityService:
    return EligibilityService(db)


def get_trail_connection_service(db: Session = Depends(get_db)) -> TrailConnectionService:
    return TrailConnectionService(db)


def get_message_service(db: Session = Depends(get_db)) -> MessageService:
    return MessageService(db)


def get_chat_gateway_dep() -> ChatGateway:
    return get_chat_gateway()
