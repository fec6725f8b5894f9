"""
Publishing of projected collections to subscribers.

- publisher: latest-value slots (teams, players, fixtures)
- callback_bridge: callback-style subscriptions for hosts outside asyncio
"""
from fpl_data.services.publishing.publisher import Publisher, StateSlot, sort_by_points
from fpl_data.services.publishing.callback_bridge import CallbackFlowWrapper, Subscription

__all__ = [
    "Publisher",
    "StateSlot",
    "sort_by_points",
    "CallbackFlowWrapper",
    "Subscription",
]
