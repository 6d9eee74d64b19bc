"""External services InlinePatch talks to."""

from inlinepatch.integrations.build_trigger import BuildTrigger, SyncTriggerError, TriggerResult

__all__ = ["BuildTrigger", "SyncTriggerError", "TriggerResult"]
