from .functions import MarketplaceFunctionAdapter

__all__ = ["MarketplaceFunctionAdapter"]
