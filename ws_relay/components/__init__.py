"""
WebSocket Relay Components.

Organized into domain-specific modules:
- core/       - Foundational components (constants, identifiers, envelope, errors)
- connection/ - Connection registry and per-connection outbound channels
- broadcast/  - Routing helpers (send_to, broadcast_all, broadcast_except)
- endpoints/  - Per-connection lifecycle (endpoint, mixins)
- resilience/ - Reconnect backoff for the client
- metrics/    - Observability (collector)

New code should import from specific submodules for clarity.
"""
