"""Cart and wishlist reconciliation between a visitor store and an account store."""

__version__ = "0.1.0"
