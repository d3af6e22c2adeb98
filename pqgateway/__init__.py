"""Block layout, row-range filtering, local object storage and TSDB block discovery for time series."""

__version__ = "0.1.0"