"""Errors raised while processing a triage turn."""


class TriageError(Exception):
    """Base class for triage errors."""


class ClassificationAmbiguous(TriageError):
    """No intent vocabulary matched the utterance.

    Never leaves the classifier: it is mapped to ``general_question`` there.
    """


class HypothesisGeneratorUnavailable(TriageError):
    """The external reasoning service failed, timed out or returned nothing usable."""


class InvalidStageTransition(TriageError):
    """Attempt to advance a conversation that already reached ``complete``."""


class PersistenceFailure(TriageError):
    """The Conversation Store could not commit a turn."""


class ConversationConflict(PersistenceFailure):
    """Another turn committed the conversation first (stale version)."""


class ConversationNotFound(TriageError):
    """The requested conversation does not exist for this user."""


class ConversationBusy(TriageError):
    """A turn for the same conversation is still in flight."""
