"""Turn a user's video selection into enqueue input."""

from typing import Iterable, List, Mapping, Optional

from .models import Video, VideoRef


def resolve_quality(
    video_id: str,
    video_qualities: Optional[Mapping[str, str]],
    global_quality: str
) -> str:
    """Per-video override if set, otherwise the global default."""
    if video_qualities:
        override = video_qualities.get(video_id)
        if override:
            return override
    return global_quality


def build_video_refs(
    selected_ids: Iterable[str],
    catalog: Mapping[str, Video],
    video_qualities: Optional[Mapping[str, str]],
    global_quality: str
) -> List[VideoRef]:
    """
    Build enqueue input for the selected videos.

    Selection order is kept. Ids missing from ``catalog`` and repeated ids are
    skipped. The quality is resolved here, once, and frozen into the ref.
    """
    refs: List[VideoRef] = []
    seen = set()
    for video_id in selected_ids:
        if video_id in seen:
            continue
        video = catalog.get(video_id)
        if video is None:
            continue
        seen.add(video_id)
        refs.append(VideoRef(
            id=video.id,
            title=video.title,
            thumbnail_url=video.thumbnail_url,
            quality=resolve_quality(video.id, video_qualities, global_quality),
        ))
    return refs
