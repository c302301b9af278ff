"""ID normalization and generation utilities."""

from typing import Optional


def generate_document_id(source: str, external_id: str) -> str:
    """Generate a unique document ID from source and external identifier."""
    return f"{source}:{external_id}"


def normalize_doi(doi: Optional[str]) -> Optional[str]:
    """Normalize DOI to canonical form."""
    if not doi:
        return None
    doi = doi.lower().strip()
    prefixes = [
        "https://doi.org/",
        "http://doi.org/",
        "https://dx.doi.org/",
        "http://dx.doi.org/",
        "doi:",
    ]
    for prefix in prefixes:
        if doi.startswith(prefix):
            doi = doi[len(prefix):]
    return doi.strip() or None


def document_url(doi: Optional[str], pmid: Optional[str]) -> str:
    """Prefer a DOI resolver link, fall back to the PubMed page."""
    normalized = normalize_doi(doi)
    if normalized:
        return f"https://doi.org/{normalized}"
    if pmid:
        return f"https://pubmed.ncbi.nlm.nih.gov/{pmid}/"
    return ""
