from otcfeed.market.feed import MarketFeed, TickSubscription

__all__ = ["MarketFeed", "TickSubscription"]
