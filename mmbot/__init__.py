"""
mmbot: order reconciliation and lifecycle engine for a market-making bot.
"""

__version__ = "0.3.0"
