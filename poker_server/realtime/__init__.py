"""
Realtime planning-poker app.

This app contains:
- The state store, session engine and connection registry for poker sessions
- A Channels consumer for `/ws/` that pushes full session snapshots on every change
- HTTP views to create a session, fetch its snapshot and resolve a PIN
"""
