import sys
import json
import logging
import argparse
from typing import Optional

from core.app_context import AppContext
from core.config_loader import load_config
from core.exceptions import ChunkingFailure, ExtractionFailure, PromptNotFound, VectorBackendUnavailable
from core.repair import JsonExtractor
from etl.resume import ResumeChunker, SectionType, DocumentTextLoader

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    stream=sys.stderr
)
logger = logging.getLogger(__name__)

DEFAULT_PROFILE_QUERY = "Work experience, education, skills and certifications of the candidate"


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def _read_input(path: Optional[str]) -> str:
    if not path or path == '-':
        return sys.stdin.read()
    with open(path, 'r', encoding='utf-8') as f:
        return f.read()


def _build_context(config_path: str) -> AppContext:
    ctx = AppContext.build(load_config(config_path))
    if ctx.vector_index is not None:
        try:
            ctx.vector_index.initialize()
        except VectorBackendUnavailable as e:
            logger.warning(f"Vector store not ready, continuing without it: {e}")
    return ctx


def cmd_extract(args) -> int:
    try:
        record, strategy = JsonExtractor().extract_with_strategy(_read_input(args.file))
    except ExtractionFailure as e:
        logger.error(f"{e} Preview: {e.raw_preview!r}")
        return 1
    logger.info(f"Recovered JSON object using '{strategy}' strategy")
    _print_json(record)
    return 0


def cmd_chunk(args) -> int:
    config = load_config(args.config)
    chunker = ResumeChunker(config.chunker.chunk_size, config.chunker.min_chunk_size)
    text = DocumentTextLoader().load(args.file)
    chunks = chunker.chunk(text, args.subject)
    _print_json([c.to_dict() for c in chunks])
    return 0


def cmd_index(args) -> int:
    ctx = _build_context(args.config)
    result = ctx.orchestrator.index_document(args.subject, ctx.loader.load(args.file))
    _print_json({
        'subject_id': result.subject_id,
        'namespace': result.namespace,
        'chunks': len(result.chunks),
        'stored': result.stored_count,
        'stages': [s.value for s in result.stages],
        'skip_reason': result.skip_reason,
    })
    return 0


def cmd_query(args) -> int:
    ctx = _build_context(args.config)
    section = SectionType.coerce(args.section) if args.section else None
    chunks = ctx.orchestrator.retrieve(args.subject, args.text, top_k=args.top_k, section_type=section)
    _print_json([c.to_dict() for c in chunks])
    return 0


def cmd_profile(args) -> int:
    ctx = _build_context(args.config)
    text = ctx.loader.load(args.file)
    result = ctx.orchestrator.generate_grounded_record(args.subject, text, args.query)
    _print_json(result.to_dict())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Grounded CV extraction driver")
    parser.add_argument('--config', type=str, default='config.yaml', help='Path to config.yaml')
    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('extract', help='Recover a JSON object from raw LLM output (file or stdin)')
    p.add_argument('file', nargs='?', help="LLM output file; '-' or omitted reads stdin")
    p.set_defaults(func=cmd_extract)

    p = sub.add_parser('chunk', help='Print section-typed chunks of a document')
    p.add_argument('file')
    p.add_argument('--subject', required=True, help='Subject (candidate) id')
    p.set_defaults(func=cmd_chunk)

    p = sub.add_parser('index', help='Chunk, embed and store a document')
    p.add_argument('file')
    p.add_argument('--subject', required=True)
    p.set_defaults(func=cmd_index)

    p = sub.add_parser('query', help='Retrieve stored chunks for a query')
    p.add_argument('--subject', required=True)
    p.add_argument('--text', required=True, help='Query text')
    p.add_argument('--top-k', type=int, default=None)
    p.add_argument('--section', choices=[s.value for s in SectionType], default=None)
    p.set_defaults(func=cmd_query)

    p = sub.add_parser('profile', help='Generate a grounded profile record from a document')
    p.add_argument('file')
    p.add_argument('--subject', required=True)
    p.add_argument('--query', default=DEFAULT_PROFILE_QUERY)
    p.set_defaults(func=cmd_profile)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except (ChunkingFailure, ExtractionFailure, PromptNotFound) as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    except (FileNotFoundError, ValueError) as e:
        logger.error(str(e))
        return 2


if __name__ == "__main__":
    sys.exit(main())
