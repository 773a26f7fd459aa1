from .api_token import ApiToken
from .pending_authorization import PendingAuthorization
from .listing import Listing
from .buyer_message import BuyerMessage
from .job_run import JobRun

# This ensures all models are registered with SQLAlchemy
__all__ = [
    'ApiToken',
    'PendingAuthorization',
    'Listing',
    'BuyerMessage',
    'JobRun',
]
