"""
News Relay Service

Real-time fan-out relay for crypto news. Keeps one WebSocket subscription to
the Tree of Alpha feed, normalizes each item (category, contract addresses,
tickers) and rebroadcasts it to every connected WebSocket subscriber.

Architecture:
    Tree of Alpha (external) -> upstream -> ws_server registry -> subscribers

Components:
    - upstream: WebSocket link with fixed-interval reconnect, and the normalizer
    - ws_server: subscriber registry, WebSocket server and /health endpoint
    - service: wiring plus start/stop/status lifecycle
"""
