from prometheus_client import Counter

# Business Metrics
shopdesk_orders_created_total = Counter(
    "shopdesk_orders_created_total",
    "Total orders created through checkout",
)

shopdesk_order_status_changes_total = Counter(
    "shopdesk_order_status_changes_total",
    "Order status changes applied by admins",
    ["status"],
)

shopdesk_payment_intents_total = Counter(
    "shopdesk_payment_intents_total",
    "Payment intents requested from the gateway",
    ["result"],  # Labels: 'created', 'gateway_error'
)

shopdesk_payment_webhooks_total = Counter(
    "shopdesk_payment_webhooks_total",
    "Payment webhook deliveries by outcome",
    ["outcome"],  # Labels: 'approved', 'updated', 'duplicate', 'ignored', 'error', ...
)

shopdesk_purchases_recorded_total = Counter(
    "shopdesk_purchases_recorded_total",
    "Purchase history rows created",
    ["source"],  # Labels: 'payment_approval', 'manual_delivery'
)

shopdesk_digital_downloads_total = Counter(
    "shopdesk_digital_downloads_total",
    "Digital download requests by result",
    ["result"],  # Labels: 'granted', 'forbidden', 'not_found'
)
