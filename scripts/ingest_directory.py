"""Ingest every transcript in a local directory into pending task sets."""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.config import configure_logging, settings
from src.errors import DuplicateIngestionError, TaskEngineError
from src.extraction.llm import get_extraction_client
from src.ingestion.parsers import TRANSCRIPT_EXTENSIONS
from src.ingestion.pipeline import PipelineStatus, process_transcript
from src.ingestion.sources import LocalDirectoryFileSource
from src.lifecycle.store import get_lifecycle_store
from src.pipeline_config import get_pipeline_config


def ingest_directory(
    data_dir: str = "data/transcripts",
    folder_id: str = "uploads",
    max_files: int | None = None,
) -> None:
    """Run the ingestion pipeline over each transcript file in *data_dir*."""
    data_path = Path(data_dir)

    if not data_path.exists():
        print(f"Data directory {data_dir} not found.")
        return

    files = sorted(p for p in data_path.iterdir() if p.suffix.lower() in TRANSCRIPT_EXTENSIONS)
    if max_files:
        files = files[:max_files]

    print(f"Ingesting {len(files)} transcripts from {data_dir}...")

    source = LocalDirectoryFileSource(data_path)
    store = get_lifecycle_store()
    client = get_extraction_client(settings)
    config = get_pipeline_config()
    created = skipped = duplicates = errors = 0

    for i, filepath in enumerate(files):
        try:
            result = process_transcript(
                filepath.name,
                folder_id,
                file_source=source,
                store=store,
                client=client,
                config=config,
            )
        except DuplicateIngestionError:
            duplicates += 1
            print(f"  [{i + 1}] SKIP {filepath.name} -- already ingested")
            continue
        except TaskEngineError as e:
            errors += 1
            print(f"  [{i + 1}] ERROR {filepath.name}: {e}")
            continue

        if result.status is PipelineStatus.SKIPPED:
            skipped += 1
            print(f"  [{i + 1}] SKIP {filepath.name} -- {result.reason}")
        else:
            created += 1
            print(
                f"  [{i + 1}/{len(files)}] {filepath.name} -- {result.task_count} tasks "
                f"(set {result.pending_id})"
            )

    print(
        f"\nDone! {created} sets created, {skipped} skipped, "
        f"{duplicates} duplicates, {errors} errors."
    )


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--dir", default="data/transcripts")
    parser.add_argument("--folder", default="uploads")
    parser.add_argument("--max", type=int, default=None)
    args = parser.parse_args()
    configure_logging(settings.log_level)
    ingest_directory(args.dir, args.folder, args.max)
