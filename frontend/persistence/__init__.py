"""
Persistence Layer (client side)

Node gateways bound to one chart, and the debounced writer used for
content and style edits.
"""

from .gateway import (
    NodeGateway, LocalNodeGateway, HttpNodeGateway, GatewayError, GatewayNotFound,
)
from .debounce import DebouncedWriter, AsyncioScheduler, ManualScheduler

__all__ = [
    'NodeGateway', 'LocalNodeGateway', 'HttpNodeGateway', 'GatewayError', 'GatewayNotFound',
    'DebouncedWriter', 'AsyncioScheduler', 'ManualScheduler',
]
