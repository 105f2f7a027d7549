from core.entities import ListingRecord

DEFAULT_PREVIEW_MIN_LENGTH = 50


def passes_prefilter(
    record: ListingRecord,
    *,
    preview_min_length: int = DEFAULT_PREVIEW_MIN_LENGTH,
) -> bool:
    """
    Retention check for a listing record. A title is mandatory, and the
    record must show some sign of being real content: a score, replies, or a
    preview longer than preview_min_length. Filters ads and placeholders.
    """
    if not record.title.strip():
        return False

    if record.score > 0 or record.reply_count > 0:
        return True

    return len(record.preview_text) > preview_min_length

