"""Offline-first sync infrastructure for VibeHealth.

Modules:
    store           LocalRecordStore contract + in-memory implementation
    postgres_store  asyncpg-backed LocalRecordStore
    remote          RemoteSyncClient contract + httpx implementation
    connectivity    ConnectivityObserver contract + in-process monitor
    status          Derived SyncStatus and stream helpers
    policy          Offline operation policy table
    coordinator     Local-first save, push, reconciliation, status
    scheduler       Periodic / reconnect-triggered reconciliation
"""
