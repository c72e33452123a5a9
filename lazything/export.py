"""
Export of aggregated proxies.

Each run writes one file named after the current time, holding a single
`proxies` key whose value is the ordered list of accepted entries.
"""

import io
import json
import logging
import os
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, TextIO

import yaml

logger = logging.getLogger(__name__)

PROXIES_KEY = 'proxies'

# ex: proxies 10-12-2024 13:35:47.yaml
FILENAME_PREFIX = 'proxies'
TIMESTAMP_FORMAT = '%d-%m-%Y %H:%M:%S'


# =============================================================================
# Export Formats
# =============================================================================

class Exporter(ABC):
    """Base class for proxy list exporters."""

    extension = ''

    @abstractmethod
    def export(self, proxies: List[Dict[str, Any]], output: TextIO):
        """Export proxies to a file-like object."""
        pass

    def export_to_file(self, proxies: List[Dict[str, Any]], filepath: str) -> bool:
        """Export proxies to a file."""
        try:
            path = Path(filepath)
            path.parent.mkdir(parents=True, exist_ok=True)

            with open(filepath, 'w', encoding='utf-8') as f:
                self.export(proxies, f)
            return True
        except OSError as e:
            logger.error(f"Failed to write {filepath}: {e}")
            return False

    def export_to_string(self, proxies: List[Dict[str, Any]]) -> str:
        """Export proxies to a string."""
        buffer = io.StringIO()
        self.export(proxies, buffer)
        return buffer.getvalue()


class YAMLExporter(Exporter):
    """Export as a YAML document, keeping entry and key order."""

    extension = '.yaml'

    def export(self, proxies: List[Dict[str, Any]], output: TextIO):
        yaml.safe_dump(
            {PROXIES_KEY: proxies},
            output,
            allow_unicode=True,
            sort_keys=False,
        )


class JSONExporter(Exporter):
    """Export as JSON."""

    extension = '.json'

    def __init__(self, indent: int = 2):
        self.indent = indent

    def export(self, proxies: List[Dict[str, Any]], output: TextIO):
        json.dump({PROXIES_KEY: proxies}, output, indent=self.indent, ensure_ascii=False)


EXPORTERS = {
    'yaml': YAMLExporter,
    'json': JSONExporter,
}


# =============================================================================
# Run Output
# =============================================================================

def output_filename(fmt: str = 'yaml', now: Optional[datetime] = None) -> str:
    """Human-readable, timestamped file name for one run."""
    if fmt not in EXPORTERS:
        raise ValueError(f"Unknown output format: {fmt}")
    stamp = (now or datetime.now()).strftime(TIMESTAMP_FORMAT)
    return f"{FILENAME_PREFIX} {stamp}{EXPORTERS[fmt].extension}"


def export_proxies(
    proxies: List[Dict[str, Any]],
    output_dir: str = '.',
    fmt: str = 'yaml',
    now: Optional[datetime] = None,
) -> Optional[str]:
    """
    Write proxies to a timestamped file.

    Args:
        proxies: Accepted entries, in order
        output_dir: Output directory
        fmt: 'yaml' or 'json'
        now: Timestamp for the file name (default: current time)

    Returns:
        Path of the written file, or None if writing failed
    """
    filepath = os.path.join(output_dir, output_filename(fmt, now))
    exporter = EXPORTERS[fmt]()

    if exporter.export_to_file(proxies, filepath):
        return filepath
    return None
