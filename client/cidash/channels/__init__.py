from .websocket import WebSocketChannel, websocket_channel_factory

__all__ = ["WebSocketChannel", "websocket_channel_factory"]
