from parley.api.chat import ChatAPI

__all__ = ["ChatAPI"]
