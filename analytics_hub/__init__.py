"""Analytics Hub - Google Analytics and Merchant Center reporting backend"""

__version__ = "1.0.0"
