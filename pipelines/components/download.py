"""KFP v2 component — Fetch the raw uploaded file from object storage.

Step 2 of the document ingestion pipeline.  Copies the bytes stored at
``storage_location`` into an output artifact so downstream steps (and
KFP's cache) never touch object storage again.

Local testing
-------------
    from pipelines.components.download import download_file
    download_file.python_func(
        storage_location="prod-1/1700000000000-pricing.pdf",
        storage_root="/data/storage",
        raw_file=_FakeArtifact("/tmp/raw.bin"),
        metrics=_FakeArtifact("/tmp/metrics"),
    )
"""

from kfp import dsl

from pipelines.components.runtime import COMPONENT_IMAGE


@dsl.component(base_image=COMPONENT_IMAGE)
def download_file(
    storage_location: str,
    storage_root: str,
    raw_file: dsl.Output[dsl.Artifact],
    metrics: dsl.Output[dsl.Metrics],
) -> int:
    """Write the stored object's bytes to *raw_file*.

    Parameters
    ----------
    storage_location:
        Object key, ``<product_id>/<timestamp>-<filename>``.
    storage_root:
        Root directory of the object store (a mounted volume).
    raw_file:
        Output Artifact holding the raw bytes.
    metrics:
        Output Metrics artifact.

    Returns
    -------
    int
        Number of bytes copied.

    Raises
    ------
    ObjectNotFoundError
        When nothing is stored at *storage_location*.
    """
    import logging
    from pathlib import Path

    from sales_rag.storage import LocalObjectStorage

    logging.basicConfig(level=logging.INFO)
    log = logging.getLogger("download_file")

    data = LocalObjectStorage(storage_root).download(storage_location)

    out_path = Path(raw_file.path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(data)

    raw_file.metadata["storage_location"] = storage_location
    raw_file.metadata["size_bytes"] = len(data)
    metrics.log_metric("bytes_downloaded", len(data))

    log.info("Downloaded %d bytes from %s", len(data), storage_location)
    return len(data)
