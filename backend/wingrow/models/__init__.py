from .auth import User, SessionToken
from .claims import Claim, ClaimItem
from .inventory import InventoryItem, IssueRequest

__all__ = [
    'User', 'SessionToken',
    'Claim', 'ClaimItem',
    'InventoryItem', 'IssueRequest',
]
