#!/usr/bin/env python3
"""
Section Navigator - command-line entry point

Infers navigable sections for one PDF or every PDF of a directory and writes
them as JSON replace payloads.
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from .config import InferenceConfig
from .engine import SectionInferenceEngine
from .json_handler import SectionJSONHandler
from .logging_config import handle_document_error, setup_logging
from .pdf_provider import PyMuPDFPageProvider

logger = setup_logging()


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        argparse.Namespace: Parsed arguments
    """
    parser = argparse.ArgumentParser(
        description='Infer navigable sections (table of contents) from PDF files',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  section-navigator report.pdf
  section-navigator ./pdfs --output ./sections --workers 4
        """
    )
    parser.add_argument('input', type=str,
                        help='PDF file or directory containing PDF files')
    parser.add_argument('--output', '-o', type=str, default=None,
                        help='Output directory for <name>.sections.json files')
    parser.add_argument('--config', '-c', type=str, default=None,
                        help='JSON file overriding inference thresholds')
    parser.add_argument('--workers', '-w', type=int, default=None,
                        help='Parallel page reads per document')
    parser.add_argument('--log-level', type=str, default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        help='Logging level')
    return parser.parse_args(argv)


def discover_pdf_files(input_path: Path) -> List[Path]:
    """
    Resolve the input argument to a sorted list of PDF files.

    Args:
        input_path: A PDF file or a directory

    Returns:
        PDF paths in name order
    """
    if input_path.is_file():
        return [input_path]
    pdf_files = [p for p in input_path.iterdir() if p.is_file() and p.suffix.lower() == '.pdf']
    pdf_files.sort(key=lambda p: p.name.lower())
    logger.info(f"Discovered {len(pdf_files)} PDF files in {input_path}")
    return pdf_files


def load_config(config_path: Optional[str], workers: Optional[int]) -> InferenceConfig:
    config = InferenceConfig.from_json_file(config_path) if config_path else InferenceConfig()
    if workers:
        config.max_workers = max(1, workers)
    return config


def process_single_pdf(pdf_path: Path, engine: SectionInferenceEngine,
                       handler: SectionJSONHandler, output_dir: Optional[Path]) -> bool:
    """
    Infer sections for one PDF and emit them.

    Returns:
        True when the document was processed, False when it could not be opened
    """
    try:
        with PyMuPDFPageProvider.open(pdf_path) as provider:
            sections = engine.infer_sections(provider)
            page_count = provider.page_count()
    except Exception as e:
        handle_document_error(str(pdf_path), e, logger)
        return False

    json_data = handler.create_document_output(sections, pdf_path.name, page_count)
    if output_dir is None:
        print(handler.to_json(json_data))
    else:
        try:
            handler.write_json_file(json_data, str(output_dir / f"{pdf_path.stem}.sections.json"))
        except Exception as e:
            handle_document_error(str(pdf_path), e, logger)
            return False

    logger.info(f"{pdf_path.name}: {len(sections)} sections "
                f"({sections[0].source.value if sections else 'none'})")
    return True


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_arguments(argv)
    setup_logging(args.log_level)

    input_path = Path(args.input)
    if not input_path.exists():
        logger.error(f"Input path does not exist: {input_path}")
        return 1

    try:
        config = load_config(args.config, args.workers)
    except (OSError, ValueError, TypeError) as e:
        logger.error(f"Invalid config file {args.config}: {e}")
        return 1

    pdf_files = discover_pdf_files(input_path)
    if not pdf_files:
        logger.error(f"No PDF files found in {input_path}")
        return 1

    output_dir = Path(args.output) if args.output else None
    if output_dir is None and len(pdf_files) > 1:
        output_dir = Path.cwd()

    engine = SectionInferenceEngine(config)
    handler = SectionJSONHandler()

    failures = 0
    for pdf_path in pdf_files:
        if not process_single_pdf(pdf_path, engine, handler, output_dir):
            failures += 1

    if failures:
        logger.error(f"{failures} of {len(pdf_files)} documents failed")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
