from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, List

IMAGE_EXTENSIONS: FrozenSet[str] = frozenset({"jpg", "jpeg", "png"})

_REPORT_TYPES = frozenset({"jpg", "jpeg", "png", "pdf"})
_PHOTO_TYPES = IMAGE_EXTENSIONS
_EVIDENCE_TYPES = frozenset({"jpg", "jpeg", "png", "pdf", "doc", "docx"})


@dataclass(frozen=True)
class AttachmentSlot:
    key: str            # column name on dc_installations
    label: str          # human-readable name used inside bundles
    extensions: FrozenSet[str]


# Ordered: bundles and summaries list slots in this order.
ATTACHMENT_SLOTS: Dict[str, AttachmentSlot] = {
    s.key: s
    for s in (
        AttachmentSlot("delivery_report_file", "Delivery_Report", _REPORT_TYPES),
        AttachmentSlot("installation_report_file", "Installation_Report", _REPORT_TYPES),
        AttachmentSlot("belarc_report_file", "Belarc_Report", frozenset({"pdf"})),
        AttachmentSlot("back_side_photo_file", "Back_Side_Photo", _PHOTO_TYPES),
        AttachmentSlot("os_installation_photo_file", "OS_Installation_Photo", _PHOTO_TYPES),
        AttachmentSlot("keyboard_photo_file", "Keyboard_Photo", _PHOTO_TYPES),
        AttachmentSlot("mouse_photo_file", "Mouse_Photo", _PHOTO_TYPES),
        AttachmentSlot("screenshot_file", "Screenshot", _PHOTO_TYPES),
        AttachmentSlot("evidence_file", "Evidence_File", _EVIDENCE_TYPES),
    )
}

SLOT_KEYS: List[str] = list(ATTACHMENT_SLOTS)


def get_slot(key: str) -> AttachmentSlot | None:
    return ATTACHMENT_SLOTS.get(key)
