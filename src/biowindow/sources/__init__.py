"""Sample producers feeding the aggregator."""
