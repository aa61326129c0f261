"""Repair Module - recovering JSON objects from imperfect LLM output."""
from core.repair.scanner import ScanState, scan
from core.repair.strategies import (
    RepairChain, StrategyOutcome, OutcomeKind,
    direct_decode, close_unbalanced, repair_truncated, aggressive_repair,
    extract_partial, repair_json
)
from core.repair.extractor import JsonExtractor, extract_json_from_llm, strip_code_fences

__all__ = [
    'ScanState', 'scan',
    'RepairChain', 'StrategyOutcome', 'OutcomeKind',
    'direct_decode', 'close_unbalanced', 'repair_truncated', 'aggressive_repair',
    'extract_partial', 'repair_json',
    'JsonExtractor', 'extract_json_from_llm', 'strip_code_fences'
]
