"""
NATS Adapters

Provides the NATS client wrapper used to fan series updates out.
"""

from dataflow.adapters.nats_client import NatsClient, NatsConfig, Topics

__all__ = ["NatsClient", "NatsConfig", "Topics"]
