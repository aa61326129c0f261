"""
Unit tests for CitationValidator.

Tests verify:
- Cited claims pass, uncited claims produce CitationMissing warnings
- Citations pointing at chunks the model never saw are flagged
- Nested list paths and claim labels
- Warnings are logged, never raised
"""
import logging

import pytest

from core.config_loader import CitationRule
from core.exceptions import CitationMissing
from etl.citations import CitationValidator, parse_chunk_reference


@pytest.fixture
def validator():
    return CitationValidator([
        CitationRule(path="skills", label_field="skill"),
        CitationRule(path="criteria_matches[].evidence", label_field="criterion"),
    ])


class TestCitationValidator:

    def test_all_cited(self, validator):
        record = {
            'skills': [{'skill': 'Python', 'chunkIndex': 2}, {'skill': 'Go', 'chunkId': 'chunk-c1-0'}],
        }

        report = validator.validate(record, known_chunk_indices=[0, 1, 2])

        assert report.ok
        assert report.checked == 2
        assert report.cited == 2

    def test_missing_citation_is_warning(self, validator, caplog):
        record = {'skills': [{'skill': 'Python', 'chunkIndex': 0}, {'skill': 'Rust'}]}

        with caplog.at_level(logging.WARNING, logger="etl.citations"):
            report = validator.validate(record, known_chunk_indices=[0])

        assert not report.ok
        assert report.checked == 2
        assert report.cited == 1
        warning = report.warnings[0]
        assert warning.path == "skills[1]"
        assert warning.reason == "missing"
        assert warning.label == "Rust"
        assert warning.category is CitationMissing
        assert "CitationMissing" in caplog.text
        assert "Rust" in caplog.text

    def test_unknown_chunk(self, validator):
        record = {'skills': [{'skill': 'Python', 'chunkIndex': 7}]}

        report = validator.validate(record, known_chunk_indices=[0, 1])

        assert [w.reason for w in report.warnings] == ["unknown_chunk"]
        assert report.warnings[0].cited == 7
        assert "unknown chunk 7" in report.warnings[0].message()

    def test_unknown_chunk_check_skipped_without_known_indices(self, validator):
        record = {'skills': [{'skill': 'Python', 'chunkIndex': 7}]}

        assert validator.validate(record).ok

    def test_nested_evidence_path(self, validator):
        record = {
            'criteria_matches': [
                {
                    'criterion': '5+ years Python',
                    'evidence': [
                        {'quote': 'Built services in Python', 'chunkIndex': 1},
                        {'quote': 'Python since 2015'},
                    ],
                },
                {'criterion': 'Kubernetes', 'evidence': ['Ran clusters']},
            ]
        }

        report = validator.validate(record, known_chunk_indices=[0, 1])

        assert report.checked == 3
        assert report.cited == 1
        assert [(w.path, w.label) for w in report.warnings] == [
            ("criteria_matches[0].evidence[1]", "5+ years Python"),
            ("criteria_matches[1].evidence[0]", "Ran clusters"),
        ]

    def test_absent_paths_are_ignored(self, validator):
        report = validator.validate({'summary': 'Backend engineer'})

        assert report.ok
        assert report.checked == 0

    def test_report_to_dict(self, validator):
        report = validator.validate({'skills': ['SQL']})

        data = report.to_dict()
        assert data['checked'] == 1
        assert data['cited'] == 0
        assert data['warnings'][0]['message'] == "Claim skills[0] (SQL) has no chunk citation"

    def test_custom_citation_fields(self):
        validator = CitationValidator([CitationRule(path="skills")], citation_fields=["source"])

        report = validator.validate({'skills': [{'name': 'Go', 'source': 3}]}, known_chunk_indices=[3])

        assert report.ok


class TestParseChunkReference:

    @pytest.mark.parametrize("value,expected", [
        (3, 3),
        (2.0, 2),
        ("4", 4),
        ("chunk-c1-12", 12),
        ("[Chunk 5]", None),
        ("no number", None),
        (2.5, None),
        (True, None),
        (None, None),
    ])
    def test_values(self, value, expected):
        assert parse_chunk_reference(value) == expected
