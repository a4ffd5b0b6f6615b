"""Exception hierarchy for the round indexer."""


class RoundIndexerError(Exception):
    """Base class for every error raised by the indexer."""


class ConfigError(RoundIndexerError, ValueError):
    """Bad arguments or configuration, detected before any network call."""


class FetchError(RoundIndexerError, RuntimeError):
    """A chain client call failed or returned a log that cannot be ordered."""


class ConsistencyError(RoundIndexerError, RuntimeError):
    """Stored state disagrees with the round or chain being synced."""


class ReconciliationError(ConsistencyError):
    """Reconciliation could not run over the supplied event streams."""


class KeeperPaidMismatchError(ReconciliationError):
    """Sum of Stepped rewards differs from the Finalized keeperPaid.

    Signals an indexer or chain accounting defect, never a transient
    condition, so callers must not retry it blindly.
    """

    def __init__(self, derived: int, reported: int):
        self.derived = derived
        self.reported = reported
        super().__init__(f"keeper paid mismatch: derived {derived} != finalized {reported}")


class StoreFormatError(RoundIndexerError, ValueError):
    """A persisted model or cursor does not have the expected shape."""


class ReadModelUnavailableError(RoundIndexerError, RuntimeError):
    """No readable snapshot exists for the live read path."""
