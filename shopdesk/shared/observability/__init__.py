from .metrics import (
    shopdesk_digital_downloads_total,
    shopdesk_order_status_changes_total,
    shopdesk_orders_created_total,
    shopdesk_payment_intents_total,
    shopdesk_payment_webhooks_total,
    shopdesk_purchases_recorded_total,
)
from .setup import setup_observability
