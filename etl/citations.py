#!/usr/bin/env python3
"""
Citation checks for generated records.

Generated claims (skills, evidence quotes, ...) are expected to name the
chunk they came from. Missing or unknown citations are reported as
warnings; they never fail the pipeline.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple, Type

from core.config_loader import CitationRule
from core.exceptions import CitationMissing

logger = logging.getLogger(__name__)

DEFAULT_CITATION_FIELDS = ("chunkIndex", "chunkId")

_TRAILING_INT = re.compile(r"(\d+)\s*$")


@dataclass
class CitationWarning:
    path: str
    reason: str  # "missing" | "unknown_chunk"
    label: Optional[str] = None
    cited: Any = None
    category: Type[Warning] = CitationMissing

    def message(self) -> str:
        subject = f"{self.path} ({self.label})" if self.label else self.path
        if self.reason == "unknown_chunk":
            return f"Claim {subject} cites unknown chunk {self.cited!r}"
        return f"Claim {subject} has no chunk citation"


@dataclass
class CitationReport:
    checked: int = 0
    cited: int = 0
    warnings: List[CitationWarning] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.warnings

    def to_dict(self) -> Dict[str, Any]:
        return {
            'checked': self.checked,
            'cited': self.cited,
            'warnings': [
                {'path': w.path, 'reason': w.reason, 'label': w.label, 'cited': w.cited, 'message': w.message()}
                for w in self.warnings
            ],
        }


def parse_chunk_reference(value: Any) -> Optional[int]:
    """Chunk index from a chunkIndex/chunkId value (3, "3", "chunk-abc-3")."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        match = _TRAILING_INT.search(value)
        if match:
            return int(match.group(1))
    return None


class CitationValidator:
    """Check that configured claim lists cite retrieved chunks.

    A rule path is dotted; a segment ending in "[]" walks into every
    item of that list, e.g. "criteria_matches[].evidence".
    """

    def __init__(
        self,
        rules: Sequence[CitationRule],
        citation_fields: Sequence[str] = DEFAULT_CITATION_FIELDS
    ):
        self.rules = list(rules)
        self.citation_fields = tuple(citation_fields)

    def validate(
        self,
        record: Dict[str, Any],
        known_chunk_indices: Optional[Iterable[int]] = None
    ) -> CitationReport:
        """
        Args:
            record: Generated record
            known_chunk_indices: Indices the model was shown; None skips the
                unknown-chunk check

        Returns:
            CitationReport with one warning per uncited or mis-cited claim
        """
        known: Optional[Set[int]] = set(known_chunk_indices) if known_chunk_indices is not None else None
        report = CitationReport()

        for rule in self.rules:
            for path, label, claim in self._claims(record, rule):
                report.checked += 1
                warning = self._check_claim(path, label, claim, known)
                if warning is None:
                    report.cited += 1
                    continue
                report.warnings.append(warning)
                logger.warning(f"{warning.category.__name__}: {warning.message()}")

        if report.checked:
            logger.info(f"Citation check: {report.cited}/{report.checked} claims cited")
        return report

    def _check_claim(
        self,
        path: str,
        label: Optional[str],
        claim: Any,
        known: Optional[Set[int]]
    ) -> Optional[CitationWarning]:
        if not isinstance(claim, dict):
            return CitationWarning(path=path, reason="missing", label=label)

        cited = next((claim[f] for f in self.citation_fields if claim.get(f) is not None), None)
        if cited is None:
            return CitationWarning(path=path, reason="missing", label=label)

        if known is not None:
            index = parse_chunk_reference(cited)
            if index is None or index not in known:
                return CitationWarning(path=path, reason="unknown_chunk", label=label, cited=cited)
        return None

    def _claims(self, record: Dict[str, Any], rule: CitationRule) -> List[Tuple[str, Optional[str], Any]]:
        """Flatten the items a rule points at into (path, label, item)."""
        segments = rule.path.split(".")
        nodes: List[Tuple[str, Optional[str], Any]] = [("", None, record)]

        for position, segment in enumerate(segments):
            is_last = position == len(segments) - 1
            name = segment[:-2] if segment.endswith("[]") else segment
            next_nodes: List[Tuple[str, Optional[str], Any]] = []

            for prefix, label, node in nodes:
                if not isinstance(node, dict) or node.get(name) is None:
                    continue
                value = node[name]
                base = f"{prefix}.{name}" if prefix else name
                items = value if isinstance(value, list) else [value]
                for i, item in enumerate(items):
                    item_path = f"{base}[{i}]" if isinstance(value, list) else base
                    item_label = label
                    if rule.label_field and isinstance(item, dict) and item.get(rule.label_field) is not None:
                        item_label = str(item[rule.label_field])
                    elif is_last and isinstance(item, str):
                        item_label = item
                    if is_last or isinstance(item, dict):
                        next_nodes.append((item_path, item_label, item))

            nodes = next_nodes

        return nodes
