"""vidtube: user accounts, token auth and channel subscriptions for a video platform API."""

__version__ = "0.1.0"
