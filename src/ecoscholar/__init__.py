"""EcoScholar: adaptive qualification of literature search results.

Candidate documents for a query are scored against a query embedding
and a weighted set of semantic rules, then accepted, judged, rejected
or the whole query aborted, depending on the yield observed so far.
"""

__version__ = "0.3.0"
