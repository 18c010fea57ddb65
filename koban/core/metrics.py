"""
Prometheus metrics for monitoring.

Metrics collected:
- HTTP request duration (histogram)
- HTTP request count by status code (counter)
- Active requests (gauge)
- Store call failures (counter)
- Key lifecycle and admin login outcomes (counters)
"""

from prometheus_client import Counter, Gauge, Histogram, Info

# Application info
app_info = Info("koban_app", "Koban Key API application information")

# HTTP metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0),
)

http_requests_in_progress = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests in progress",
    ["method", "endpoint"],
)

# Store metrics
store_unavailable_total = Counter(
    "store_unavailable_total",
    "Store calls that timed out or lost their connection",
    ["reason"],
)

# Business metrics
keys_created_total = Counter(
    "keys_created_total",
    "Access keys issued",
    ["source"],
)

key_create_conflicts_total = Counter(
    "key_create_conflicts_total",
    "Create requests rejected because the user already holds an active key",
)

key_validations_total = Counter(
    "key_validations_total",
    "Key validations by result",
    ["result"],
)

admin_logins_total = Counter(
    "admin_logins_total",
    "Admin login attempts by outcome",
    ["outcome"],
)
