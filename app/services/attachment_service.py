from __future__ import annotations

import logging
import os
import tempfile
import zipfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.attachment_slots import ATTACHMENT_SLOTS, IMAGE_EXTENSIONS, AttachmentSlot
from app.core.config import Settings, get_settings
from app.core.errors import DomainError, NotFoundError, StorageError, ValidationError
from app.models.enums import InstallationStatus
from app.models.installation import Installation
from app.services.image_service import ImagePolicy, normalize_image
from app.services.installation_service import InstallationService, coerce_id, live_only
from app.services.storage import LocalBlobStorage

logger = logging.getLogger(__name__)

STORAGE_PREFIX = "dc-installations"


@dataclass(frozen=True)
class Upload:
    filename: str
    content: bytes


@dataclass(frozen=True)
class StoredFile:
    path: Path
    download_name: str


@dataclass(frozen=True)
class Bundle:
    """A finished archive in the temp dir. The caller owns deleting it."""
    path: Path
    download_name: str
    file_count: int
    sr_nos: List[str]


def storage_key(sr_no: str, slot: str, ext: str, now: Optional[datetime] = None) -> str:
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%d%H%M%S%f")
    return f"{STORAGE_PREFIX}/{sr_no}/{slot}_{stamp}.{ext}"


def _ext(name: str) -> str:
    return PurePosixPath(name).suffix.lower().lstrip(".")


def _fmt_date(d) -> str:
    return d.strftime("%Y-%m-%d") if d else "N/A"


def _fmt_ts(ts) -> str:
    return ts.strftime("%Y-%m-%d %H:%M:%S") if ts else "N/A"


def _blank(value) -> str:
    return "" if value is None else str(value)


def _yes_no(flag: bool) -> str:
    return "Yes" if flag else "No"


def installation_summary(inst: Installation, *, generated_at: Optional[datetime] = None) -> str:
    generated_at = generated_at or datetime.now(timezone.utc)

    lines = [
        "DC INSTALLATION SUMMARY",
        "========================",
        "",
        f"SR No: {inst.sr_no}",
        f"Region/Division: {inst.region_division}",
        f"District: {inst.district}",
        f"Tahsil: {inst.tahsil}",
        f"PIN Code: {inst.pin_code}",
        f"Receiver Name: {inst.receiver_name}",
        f"Contact No: {inst.contact_no}",
        f"Location Address: {inst.location_address}",
        f"DC/IR No: {_blank(inst.dc_ir_no)}",
        "",
        "STATUS INFORMATION",
        "==================",
        f"Delivery Status: {inst.delivery_status}",
        f"Installation Status: {inst.installation_status}",
        f"Priority: {inst.priority}",
        f"Assigned Technician: {_blank(inst.assigned_technician)}",
        "",
        "EQUIPMENT DETAILS",
        "=================",
        f"AIO-HP Serial: {_blank(inst.aio_hp_serial)}",
        f"Keyboard Serial: {_blank(inst.keyboard_serial)}",
        f"Mouse Serial: {_blank(inst.mouse_serial)}",
        f"UPS Serial: {_blank(inst.ups_serial)}",
        f"Hostname: {_blank(inst.hostname)}",
        "",
        "DATES",
        "=====",
        f"Dispatch Date: {_fmt_date(inst.dispatch_date)}",
        f"Delivery Date: {_fmt_date(inst.delivery_date)}",
        f"Installation Date: {_fmt_date(inst.installation_date)}",
        "",
        "DOCUMENT STATUS",
        "===============",
        f"Soft Copy DC: {_yes_no(inst.soft_copy_dc)}",
        f"Soft Copy IR: {_yes_no(inst.soft_copy_ir)}",
        f"Original POD Received: {_yes_no(inst.original_pod_received)}",
        f"Original DC Received: {_yes_no(inst.original_dc_received)}",
        f"IR Original Copy Received: {_yes_no(inst.ir_original_copy_received)}",
        "",
        "PHOTO/EVIDENCE STATUS",
        "=====================",
        f"Back Side Photo Taken: {_yes_no(inst.back_side_photo_taken)}",
        f"OS Installation Photo Taken: {_yes_no(inst.os_installation_photo_taken)}",
        f"Belarc Report Generated: {_yes_no(inst.belarc_report_generated)}",
        "",
        f"COMPLETION PERCENTAGE: {inst.completion_percentage}%",
        f"CREATED BY: {_blank(inst.created_by)}",
        f"CREATED AT: {_fmt_ts(inst.created_at)}",
        f"LAST UPDATED: {_fmt_ts(inst.updated_at)}",
        "",
        f"Generated on: {_fmt_ts(generated_at)}",
    ]
    return "\n".join(lines) + "\n"


def bulk_summary(
    installations: Sequence[Installation], *, downloaded_by: str, generated_at: Optional[datetime] = None
) -> str:
    generated_at = generated_at or datetime.now(timezone.utc)

    def _count(status: InstallationStatus) -> int:
        return sum(1 for i in installations if i.installation_status == status.value)

    lines = [
        "BULK DOWNLOAD SUMMARY",
        "=====================",
        "",
        f"Total Installations: {len(installations)}",
        f"Completed: {_count(InstallationStatus.installed)}",
        f"Pending: {_count(InstallationStatus.pending)}",
        f"In Progress: {_count(InstallationStatus.in_progress)}",
        "",
        "INSTALLATIONS INCLUDED:",
        "======================",
    ]
    lines += [f"- {i.sr_no} ({i.receiver_name}) - {i.installation_status}" for i in installations]
    lines += [
        "",
        f"Downloaded by: {downloaded_by}",
        f"Downloaded at: {_fmt_ts(generated_at)}",
    ]
    return "\n".join(lines) + "\n"


class AttachmentService:
    """
    Sole owner of attachment storage keys: upload, normalize, download,
    bundle and remove the blobs behind the nine slots.
    """

    def __init__(self, storage: LocalBlobStorage, settings: Optional[Settings] = None):
        self.storage = storage
        self.settings = settings or get_settings()
        self.records = InstallationService()
        self.image_policy = ImagePolicy(
            max_width=self.settings.image_max_width,
            jpeg_quality=self.settings.image_jpeg_quality,
            png_to_jpeg_threshold=self.settings.png_jpeg_threshold_bytes,
            max_pixels=self.settings.image_max_pixels,
        )

    # ---------------------------
    # Upload
    # ---------------------------

    def _slot_for_upload(self, slot: str) -> AttachmentSlot:
        spec = ATTACHMENT_SLOTS.get(slot)
        if spec is None:
            raise ValidationError.for_field("slot", f"Unknown attachment slot: {slot}.")
        return spec

    def _prepare(self, spec: AttachmentSlot, upload: Upload) -> tuple[bytes, str]:
        size = len(upload.content)
        if size == 0:
            raise ValidationError.for_field(spec.key, "The uploaded file is empty.")
        if size > self.settings.max_upload_bytes:
            limit_kb = self.settings.max_upload_bytes // 1024
            raise ValidationError.for_field(
                spec.key, f"The file may not be greater than {limit_kb} kilobytes."
            )

        ext = _ext(upload.filename)
        if ext not in spec.extensions:
            allowed = ", ".join(sorted(spec.extensions))
            raise ValidationError.for_field(spec.key, f"The file must be a file of type: {allowed}.")

        if ext in IMAGE_EXTENSIONS:
            try:
                return normalize_image(upload.content, ext, self.image_policy)
            except ValidationError as exc:
                raise ValidationError.for_field(spec.key, exc.message) from exc
        return upload.content, ext

    def attach(
        self,
        db: Session,
        *,
        installation_id: Any,
        slot: str,
        upload: Upload,
        actor: str,
    ) -> Installation:
        spec = self._slot_for_upload(slot)
        inst = self.records.get(db, installation_id=installation_id)
        content, ext = self._prepare(spec, upload)

        key = storage_key(inst.sr_no, spec.key, ext)
        self.storage.put(key, content)

        previous = getattr(inst, spec.key)
        setattr(inst, spec.key, key)
        inst.updated_by = actor
        try:
            db.commit()
        except Exception:
            db.rollback()
            self._discard(key)
            raise

        if previous and previous != key:
            self._discard(previous)

        db.refresh(inst)
        logger.info(
            "attachment stored",
            extra={"sr_no": inst.sr_no, "slot": spec.key, "key": key, "bytes": len(content)},
        )
        return inst

    def attach_many(
        self,
        db: Session,
        *,
        installation_id: Any,
        uploads: Mapping[str, Upload],
        actor: str,
    ) -> List[Dict[str, Optional[str]]]:
        """
        Each slot is attempted on its own; a failed slot is logged and
        reported, the others still go through.
        """
        # unknown record fails the whole request
        self.records.get(db, installation_id=installation_id)

        results: List[Dict[str, Optional[str]]] = []
        for slot, upload in uploads.items():
            try:
                inst = self.attach(db, installation_id=installation_id, slot=slot, upload=upload, actor=actor)
            except (ValidationError, StorageError) as exc:
                logger.warning(
                    "attachment failed",
                    extra={"installation_id": str(installation_id), "slot": slot, "error": exc.message},
                )
                results.append({"slot": slot, "stored_key": None, "error": exc.public_message or exc.message})
                continue
            results.append({"slot": slot, "stored_key": getattr(inst, slot), "error": None})
        return results

    # ---------------------------
    # Download
    # ---------------------------

    def download(self, db: Session, *, installation_id: Any, slot: str) -> StoredFile:
        spec = ATTACHMENT_SLOTS.get(slot)
        if spec is None:
            raise NotFoundError(f"Unknown attachment slot: {slot}.")

        inst = self.records.get(db, installation_id=installation_id)
        key = getattr(inst, spec.key)
        if not key:
            raise NotFoundError(f"No {spec.label} uploaded for this installation.")

        if not self.storage.exists(key):
            logger.warning("dangling attachment", extra={"sr_no": inst.sr_no, "slot": spec.key, "key": key})
            raise NotFoundError(f"{spec.label} file not found in storage.")

        return StoredFile(
            path=self.storage.local_path(key),
            download_name=f"{inst.sr_no}_{spec.label}.{_ext(key)}",
        )

    # ---------------------------
    # Bundles
    # ---------------------------

    def _present_files(self, inst: Installation) -> List[tuple[AttachmentSlot, Path]]:
        found = []
        for slot, key in inst.attachment_slots_present().items():
            if self.storage.exists(key):
                found.append((ATTACHMENT_SLOTS[slot], self.storage.local_path(key)))
            else:
                logger.warning("dangling attachment skipped", extra={"sr_no": inst.sr_no, "slot": slot})
        return found

    def _write_archive(self, prefix: str, fill: Callable[[zipfile.ZipFile], None]) -> Path:
        """
        Builds a zip in the temp dir. On any failure the partial file is
        removed before the error propagates.
        """
        temp_dir = Path(self.settings.temp_dir)
        temp_dir.mkdir(parents=True, exist_ok=True)
        fd, name = tempfile.mkstemp(prefix=prefix, suffix=".zip", dir=temp_dir)
        os.close(fd)
        zip_path = Path(name)

        try:
            with zipfile.ZipFile(zip_path, "w", zipfile.ZIP_DEFLATED) as zf:
                fill(zf)
        except OSError as exc:
            zip_path.unlink(missing_ok=True)
            raise StorageError(f"Could not build archive {zip_path.name}: {exc}") from exc
        except BaseException:
            zip_path.unlink(missing_ok=True)
            raise
        return zip_path

    def bundle(self, db: Session, *, installation_id: Any) -> Bundle:
        inst = self.records.get(db, installation_id=installation_id)
        files = self._present_files(inst)
        if not files:
            raise NotFoundError("No files found for this installation.")

        def fill(zf: zipfile.ZipFile) -> None:
            for spec, path in files:
                zf.write(path, f"{spec.label}{path.suffix}")
            zf.writestr("Installation_Summary.txt", installation_summary(inst))

        zip_path = self._write_archive(f"DC_{inst.sr_no}_", fill)

        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%d_%H-%M-%S")
        return Bundle(
            path=zip_path,
            download_name=f"DC_{inst.sr_no}_files_{stamp}.zip",
            file_count=len(files),
            sr_nos=[inst.sr_no],
        )

    def bundle_many(
        self,
        db: Session,
        *,
        installation_ids: Sequence[Any],
        downloaded_by: str,
    ) -> Bundle:
        ids = []
        for raw in installation_ids:
            try:
                ids.append(coerce_id(raw))
            except NotFoundError:
                logger.warning("bundle: skipping invalid id", extra={"id": str(raw)})

        installations: List[Installation] = []
        if ids:
            installations = list(
                db.execute(
                    select(Installation)
                    .where(Installation.id.in_(ids), live_only())
                    .order_by(Installation.sr_no)
                ).scalars()
            )
        if not installations:
            raise NotFoundError("No valid installations found.")

        per_record = [(inst, self._present_files(inst)) for inst in installations]
        total_files = sum(len(files) for _, files in per_record)
        if total_files == 0:
            raise NotFoundError("No files found for the selected installations.")

        def fill(zf: zipfile.ZipFile) -> None:
            for inst, files in per_record:
                folder = f"DC_{inst.sr_no}"
                for spec, path in files:
                    zf.write(path, f"{folder}/{spec.label}{path.suffix}")
                zf.writestr(f"{folder}/Installation_Summary.txt", installation_summary(inst))
            zf.writestr(
                "Bulk_Download_Summary.txt",
                bulk_summary(installations, downloaded_by=downloaded_by),
            )

        zip_path = self._write_archive("DC_Bulk_Files_", fill)

        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%d_%H-%M-%S")
        return Bundle(
            path=zip_path,
            download_name=f"DC_Bulk_Files_{stamp}.zip",
            file_count=total_files,
            sr_nos=[i.sr_no for i in installations],
        )

    # ---------------------------
    # Removal
    # ---------------------------

    def _discard(self, key: str) -> None:
        try:
            self.storage.delete(key)
        except DomainError as exc:
            logger.warning("blob delete failed", extra={"key": key, "error": exc.message})

    def remove_all(self, inst: Installation) -> int:
        """
        Deletes every present blob and clears the slots (caller commits).
        Missing blobs and failed deletes are logged, never raised.
        """
        removed = 0
        for slot, key in inst.attachment_slots_present().items():
            try:
                if self.storage.delete(key):
                    removed += 1
                else:
                    logger.info("blob already missing", extra={"sr_no": inst.sr_no, "slot": slot, "key": key})
            except DomainError as exc:
                logger.warning(
                    "blob delete failed",
                    extra={"sr_no": inst.sr_no, "slot": slot, "key": key, "error": exc.message},
                )
            setattr(inst, slot, None)
        return removed
