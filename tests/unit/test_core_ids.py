"""Unit tests for document ID and URL helpers."""

from ecoscholar.core.ids import document_url, generate_document_id, normalize_doi


class TestNormalizeDOI:
    """Tests for DOI normalization."""

    def test_normalize_doi_standard(self) -> None:
        assert normalize_doi("10.1234/abc") == "10.1234/abc"

    def test_normalize_doi_prefixes(self) -> None:
        """Resolver and scheme prefixes are stripped, case is folded."""
        assert normalize_doi("https://doi.org/10.1234/ABC") == "10.1234/abc"
        assert normalize_doi("http://dx.doi.org/10.1016/J.TEST.2024") == "10.1016/j.test.2024"
        assert normalize_doi("DOI:10.5555/1234567") == "10.5555/1234567"

    def test_normalize_doi_empty(self) -> None:
        assert normalize_doi(None) is None
        assert normalize_doi("") is None
        assert normalize_doi("   ") is None


class TestDocumentIds:
    """Tests for ID generation and canonical URLs."""

    def test_generate_document_id(self) -> None:
        assert generate_document_id("pubmed", "12345") == "pubmed:12345"

    def test_url_prefers_doi(self) -> None:
        assert document_url("10.1/X", "42") == "https://doi.org/10.1/x"

    def test_url_falls_back_to_pubmed(self) -> None:
        assert document_url(None, "42") == "https://pubmed.ncbi.nlm.nih.gov/42/"

    def test_url_empty_without_identifiers(self) -> None:
        assert document_url(None, None) == ""
