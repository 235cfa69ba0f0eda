"""Which operations may run while offline.

The policy is a lookup table.  Add a new operation kind by adding a row.
"""

from __future__ import annotations

from enum import Enum


class OfflineOperation(str, Enum):
    save_profile = "save_profile"
    validate_data = "validate_data"
    navigate = "navigate"
    sync_data = "sync_data"
    complete_onboarding = "complete_onboarding"


class ConnectivityRequirement(str, Enum):
    none = "none"                    # purely local
    deferred_sync = "deferred_sync"  # local now, pushed by reconciliation later
    online = "online"                # needs the remote store right now


OFFLINE_POLICY: dict[OfflineOperation, ConnectivityRequirement] = {
    OfflineOperation.save_profile: ConnectivityRequirement.deferred_sync,
    OfflineOperation.validate_data: ConnectivityRequirement.none,
    OfflineOperation.navigate: ConnectivityRequirement.none,
    OfflineOperation.sync_data: ConnectivityRequirement.online,
    OfflineOperation.complete_onboarding: ConnectivityRequirement.deferred_sync,
}


def can_proceed(operation: OfflineOperation, online: bool | None) -> bool:
    """Return True if ``operation`` may run given the connectivity state.

    Unknown connectivity (None) only blocks operations that need the
    remote store.

    Raises:
        KeyError: If the operation has no policy row.
    """
    requirement = OFFLINE_POLICY[operation]
    if requirement is ConnectivityRequirement.online:
        return online is True
    return True
