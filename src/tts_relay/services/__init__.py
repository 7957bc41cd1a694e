"""
Relay services: speech forwarding, playground history, the upstream HTTP
client and the error taxonomy shared by every layer.

RelayServices (services.container) wires them together with the key store
and voice catalog.
"""
