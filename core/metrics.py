"""Prometheus metrics for monitoring."""

from prometheus_client import Counter, Histogram

# Response time metrics
api_request_duration = Histogram(
    "api_request_duration_seconds", "API request duration in seconds", ["method", "endpoint", "status"]
)

# Account metrics
registrations_total = Counter("registrations_total", "Total number of accounts registered")

logins_total = Counter("logins_total", "Total number of login attempts", ["status"])

# Browse metrics
browse_requests_total = Counter("browse_requests_total", "Total number of browse requests", ["sort_by"])

browse_latency_seconds = Histogram("browse_latency_seconds", "Time to build a browse page")

# Interaction metrics
likes_total = Counter("likes_total", "Total number of like/dislike actions", ["kind"])

matches_created_total = Counter("matches_created_total", "Total number of matches created")

unlikes_total = Counter("unlikes_total", "Total number of unlikes", ["had_match"])

profile_visits_total = Counter("profile_visits_total", "Total number of profile views", ["new_visit"])

fame_recalc_errors_total = Counter("fame_recalc_errors_total", "Fame rating recomputations that failed")

# Safety & Moderation metrics
reports_total = Counter("reports_total", "Total number of reports created")

reports_latency_seconds = Histogram(
    "reports_latency_seconds", "Time to process report creation from request to response"
)

blocks_total = Counter("blocks_total", "Total number of user blocks executed")

blocks_latency_seconds = Histogram("blocks_latency_seconds", "Time to process block action from request to response")

# Messaging metrics
messages_sent_total = Counter("messages_sent_total", "Total number of chat messages sent")

notifications_created_total = Counter("notifications_created_total", "Total notifications created", ["type"])

notifications_failed_total = Counter("notifications_failed_total", "Notifications that could not be stored", ["type"])

# Photo metrics
photos_uploaded_total = Counter("photos_uploaded_total", "Total number of photos uploaded")
