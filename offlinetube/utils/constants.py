"""
Application constants and configuration values.
"""

# Application Information
API_VERSION = "v1"
APP_NAME = "OfflineTube"

# Network Configuration
USER_AGENT = "OfflineTube/0.1 (+https://github.com/yt-dlp/yt-dlp)"
TIMEOUT = 30  # seconds

# YouTube
YOUTUBE_WATCH_URL = "https://www.youtube.com/watch?v={video_id}"
VIDEO_ID_PATTERN = r"^[A-Za-z0-9_-]{1,64}$"
DEFAULT_AVAILABLE_QUALITIES = ("1080p", "720p", "480p", "360p")
PLACEHOLDER_VIDEO_THUMBNAIL = "https://placehold.co/600x400.png?text=Video"
PLACEHOLDER_PLAYLIST_THUMBNAIL = "https://placehold.co/320x180.png?text=Playlist"

# yt-dlp
AUDIO_ONLY_QUALITY = "audio_only"
VIDEO_EXTENSION = ".mp4"
AUDIO_EXTENSION = ".m4a"
YTDLP_PROGRESS_PATTERN = r"\[download\]\s+(\d+(?:\.\d+)?)%"
YTDLP_AUDIO_FORMAT = "bestaudio[ext=m4a]/bestaudio"

# Error Codes
ERROR_CODES = {
    "INTERNAL_ERROR": "E000",
    "VALIDATION_ERROR": "E001",
    "NOT_FOUND": "E002",
    "DOWNLOAD_FAILED": "E003",
    "ARCHIVE_FAILED": "E004",
    "NETWORK_ERROR": "E005",
    "CATALOG_ERROR": "E006",
    "CONFIGURATION_ERROR": "E007",
}

# Metrics Names
METRICS_NAMES = {
    "QUEUE_TASKS": "offlinetube_queue_tasks",
    "QUEUE_BUDGET": "offlinetube_queue_budget",
    "EXECUTOR_OUTCOMES_TOTAL": "offlinetube_executor_outcomes_total",
    "ARCHIVES_TOTAL": "offlinetube_archives_total",
    "HTTP_REQUESTS_TOTAL": "offlinetube_http_requests_total",
    "HTTP_REQUEST_DURATION": "offlinetube_http_request_duration_seconds",
}
