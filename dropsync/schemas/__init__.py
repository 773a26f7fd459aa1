from .tokens import TokenGrant, TokenRecord
from .supplier import (
    SupplierProduct,
    SupplierDraft,
    StagedProduct,
    PromotedDraft,
    VerifiedProduct,
)
from .channel import ChannelListing, ChannelMessage

__all__ = [
    'TokenGrant',
    'TokenRecord',
    'SupplierProduct',
    'SupplierDraft',
    'StagedProduct',
    'PromotedDraft',
    'VerifiedProduct',
    'ChannelListing',
    'ChannelMessage',
]
