"""Manifest sealing and archive packing for generated exports.

The manifest lists every generated file with its SHA-256 digest and
size. Its verification hash is computed over the fixed-order record from
`hash_utils.manifest_hash_record`, so the verifier rebuilds exactly the
bytes that were hashed here.
"""

from __future__ import annotations

import io
import json
import zipfile
from datetime import datetime
from typing import Any

from custody.application.ports.external import ExportFile
from custody.domain.hash_utils import (
    DEFAULT_HASH_SALT,
    MANIFEST_VERSION,
    compute_manifest_hash,
    format_timestamp,
    sha256_hex,
)
from custody.domain.models.export_job import ExportJob

MANIFEST_FILENAME = "manifest.json"


def storage_path_for(job: ExportJob) -> str:
    return f"{job.organization_id}/{job.id}/{job.export_type.value}.zip"


def build_manifest(
    job: ExportJob, files: list[ExportFile], generated_at: datetime
) -> dict[str, Any]:
    if not files:
        raise ValueError("An export must contain at least one file")
    names = [f.name for f in files]
    if MANIFEST_FILENAME in names or len(set(names)) != len(names):
        raise ValueError("Export file names must be unique and not manifest.json")

    return {
        "version": MANIFEST_VERSION,
        "generated_at": format_timestamp(generated_at),
        "organization_id": str(job.organization_id),
        "work_record_id": str(job.work_record_id) if job.work_record_id else None,
        "export_type": job.export_type.value,
        "filters": dict(job.filters),
        "files": [
            {
                "name": f.name,
                "type": f.content_type,
                "hash": sha256_hex(f.content),
                "size": len(f.content),
            }
            for f in files
        ],
    }


def seal_manifest(
    job: ExportJob,
    files: list[ExportFile],
    generated_at: datetime,
    salt: str = DEFAULT_HASH_SALT,
) -> tuple[dict[str, Any], str]:
    """Build the manifest and its verification hash."""
    manifest = build_manifest(job, files, generated_at)
    return manifest, compute_manifest_hash(manifest, salt)


def pack_archive(
    files: list[ExportFile], manifest: dict[str, Any], manifest_hash: str
) -> bytes:
    """Zip the files with manifest.json (which also carries its own hash)."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for f in files:
            archive.writestr(f.name, f.content)
        archive.writestr(
            MANIFEST_FILENAME,
            json.dumps(
                {**manifest, "manifest_hash": manifest_hash},
                indent=2,
                ensure_ascii=False,
            ),
        )
    return buffer.getvalue()
