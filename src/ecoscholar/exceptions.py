"""Exception hierarchy for the qualification pipeline."""


class EcoScholarError(Exception):
    """Base class for all pipeline errors."""


class PipelineCancelled(EcoScholarError):
    """Raised at a suspension point once the run's cancellation token is set."""


class OracleError(EcoScholarError):
    """The judgment oracle failed to produce a response."""


class MalformedJudgment(OracleError):
    """The judgment oracle answered, but the payload could not be parsed."""


class CandidateSourceError(EcoScholarError):
    """The candidate source failed after exhausting its retries."""


class BackendConfigError(EcoScholarError):
    """The selected LLM backend is unknown or missing its credentials."""
