"""
Lineage: Source-file evolution mining for Git repositories.

Lineage walks the commit history of each repository listed in a metadata
file and records, for every commit, which tracked files changed and the
method invocations found in each changed file at that commit:
- Pairwise history walk restricted to currently tracked, parseable files
- Per-commit and per-file failure isolation
- Method-call extraction including calls nested in arguments

Usage:
    from lineage.core import MetadataSource, ProjectRepository, get_default_db_path
    from lineage.core.processor import Processor

    with ProjectRepository(get_default_db_path(Path("."))) as store:
        processor = Processor(store)
        processor.process(MetadataSource(Path("repositories.jsonl")))
"""

__version__ = "0.1.0"
