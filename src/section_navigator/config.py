"""
Tunable thresholds for section inference.

Every heuristic constant used by the strategies lives on ``InferenceConfig`` so
hosts can adjust them per deployment (``--config`` on the CLI).
"""

import json
from dataclasses import dataclass, fields, asdict
from pathlib import Path
from typing import Any, Dict

from .logging_config import setup_logging

logger = setup_logging()


@dataclass
class InferenceConfig:
    """Thresholds and policies for every strategy."""

    # Line clustering
    line_tolerance: float = 2.2
    default_line_height: float = 12.0

    # TOC page location
    max_scan_pages: int = 60
    max_toc_span_pages: int = 8
    min_dot_leader_lines: int = 5

    # Offset estimation
    offset_sample_size: int = 8
    offset_min_page: int = 3
    offset_scan_limit: int = 160
    offset_accept_score: float = 0.22
    min_offset: int = -200
    max_offset: int = 400

    # Page refinement
    refine_window: int = 3
    refine_accept_score: float = 0.15
    header_line_count: int = 8

    # Section building
    indent_slack: float = 42.0
    max_depth: int = 3
    include_figures: bool = False
    ignore_roman_tokens: bool = True
    use_page_labels: bool = False
    anchor_titles: bool = True

    # Link TOC merging
    merge_y_tolerance: float = 10.0
    merge_x_tolerance: float = 30.0
    hanging_title_min_length: int = 12

    # Heading fallback
    heading_max_pages: int = 120
    heading_height_ratio: float = 1.35
    heading_max_indent: float = 140.0
    heading_max_length: int = 80
    headings_per_page: int = 3

    # Page fallback
    fallback_title_format: str = "Page {page}"

    # Page reads
    max_workers: int = 1

    def __post_init__(self):
        self.max_workers = max(1, int(self.max_workers))
        self.max_depth = max(1, min(3, int(self.max_depth)))
        if self.min_offset > self.max_offset:
            raise ValueError(f"min_offset ({self.min_offset}) exceeds max_offset ({self.max_offset})")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InferenceConfig":
        """
        Build a config from a mapping, ignoring unknown keys.

        Args:
            data: Mapping of field name to value

        Returns:
            InferenceConfig instance
        """
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in (data or {}).items():
            if key not in known:
                logger.warning(f"Ignoring unknown config key: {key}")
                continue
            values[key] = value
        return cls(**values)

    @classmethod
    def from_json_file(cls, path: str) -> "InferenceConfig":
        """Load a config from a JSON file."""
        config_path = Path(path)
        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Config file {config_path} must contain a JSON object")
        logger.debug(f"Loaded inference config from {config_path}")
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
