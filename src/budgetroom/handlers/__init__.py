from budgetroom.handlers.basic import basic_router
from budgetroom.handlers.personal import personal_router
from budgetroom.handlers.rooms import rooms_router

__all__ = ["basic_router", "personal_router", "rooms_router"]
