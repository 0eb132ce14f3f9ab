"""Archive parsers."""

from socialvault.worker.parsers.archive_parser import ArchiveReader, ParsedArchive

__all__ = ["ArchiveReader", "ParsedArchive"]
