from prometheus_client import Counter, Gauge

# Session lifecycle
farm_token_validation_total = Counter(
    "farm_token_validation_total",
    "Token validation attempts against /auth/verify",
    ["outcome"]  # Labels: 'valid', 'rejected', 'network_error'
)

farm_forced_logout_total = Counter(
    "farm_forced_logout_total",
    "Sessions terminated by the client",
    ["reason"]  # Labels: 'token_rejected', 'session_expired', 'token_expired', 'refresh_failed', 'unauthorized'
)

# Shopping
farm_cart_mutation_total = Counter(
    "farm_cart_mutation_total",
    "Cart and wishlist mutations",
    ["operation", "status"]
)

farm_cart_items = Gauge(
    "farm_cart_items",
    "Number of units currently in the cart"
)

# Backend liveness
farm_health_check_total = Counter(
    "farm_health_check_total",
    "Backend liveness probes",
    ["result"]  # Labels: 'healthy', 'unhealthy'
)
