from .aggregator import StatisticsAggregator, normalize_timestamp_ms

__all__ = ['StatisticsAggregator', 'normalize_timestamp_ms']
