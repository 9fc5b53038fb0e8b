from otcfeed.scheduler.otc_scheduler import OTCScheduler, RealPriceSource

__all__ = ["OTCScheduler", "RealPriceSource"]
