"""Ingestion package."""

from cep.ingestion.filenames import get_latest_files, parse_filename
from cep.ingestion.loader import DocumentLoadError, load_document, parse_document
from cep.ingestion.mapper import CallMappingError, map_call_graph
from cep.ingestion.processor import DocumentProcessor
from cep.ingestion.upsert import CallWriteError, write_call_graph
from cep.ingestion.watcher import DirectoryWatcher

__all__ = [
    "CallMappingError",
    "CallWriteError",
    "DirectoryWatcher",
    "DocumentLoadError",
    "DocumentProcessor",
    "get_latest_files",
    "load_document",
    "map_call_graph",
    "parse_document",
    "parse_filename",
    "write_call_graph",
]
