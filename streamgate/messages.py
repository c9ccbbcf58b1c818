"""User-facing error messages, keyed by locale."""
from __future__ import annotations

from typing import Dict

DEFAULT_LOCALE = "th"

MESSAGES: Dict[str, Dict[str, str]] = {
    "th": {
        "missing_input": "กรุณาใส่ URL หรือ Video ID",
        "invalid_url": "URL ไม่ถูกต้อง",
        "info_failed": "ไม่สามารถดึงข้อมูลวิดีโอได้",
        "download_failed": "ไม่สามารถดาวน์โหลดได้",
        "stream_failed": "เกิดข้อผิดพลาดในการดาวน์โหลด",
        "format_not_found": "ไม่พบรูปแบบที่เลือก กรุณาเลือกคุณภาพอื่น",
        "video_unavailable": "วิดีโอไม่สามารถเข้าถึงได้ หรืออาจถูกลบแล้ว",
        "private_video": "วิดีโอเป็นแบบส่วนตัว ไม่สามารถเข้าถึงได้",
        "age_restricted": "วิดีโอมีการจำกัดอายุ ไม่สามารถดาวน์โหลดได้",
        "method_not_allowed": "Method not allowed",
    },
    "en": {
        "missing_input": "Please provide a URL or a video ID",
        "invalid_url": "Invalid URL",
        "info_failed": "Could not fetch video information",
        "download_failed": "Could not download the video",
        "stream_failed": "An error occurred while downloading",
        "format_not_found": "The selected format was not found, please choose another quality",
        "video_unavailable": "The video is unavailable or may have been removed",
        "private_video": "The video is private and cannot be accessed",
        "age_restricted": "The video is age-restricted and cannot be downloaded",
        "method_not_allowed": "Method not allowed",
    },
}


def message(key: str, locale: str = DEFAULT_LOCALE) -> str:
    """Look up *key* for *locale*, falling back to the default locale."""
    table = MESSAGES.get(locale) or MESSAGES[DEFAULT_LOCALE]
    return table.get(key) or MESSAGES[DEFAULT_LOCALE][key]
