"""Core services: configuration, logging, events, codec, variant store, presenter."""
