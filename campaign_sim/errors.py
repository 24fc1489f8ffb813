from __future__ import annotations


class CampaignSimError(Exception):
    """Base class for campaign simulation errors."""


class TallyInvariantError(CampaignSimError, ValueError):
    """Outcome counts do not add up to the number of trials requested."""


class OracleError(CampaignSimError):
    """A response oracle could not complete a sub-batch of trials."""


class RunCancelled(CampaignSimError):
    """A batch run was cancelled before every sub-batch completed."""
