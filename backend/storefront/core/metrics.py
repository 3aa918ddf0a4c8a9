"""Prometheus metrics for the application"""
from prometheus_client import Counter, REGISTRY


def _counter(name: str, documentation: str, labels):
    # Module reloads in tests would otherwise raise a duplicate timeseries error
    try:
        return Counter(name, documentation, labels)
    except ValueError:
        return REGISTRY._names_to_collectors.get(name)


webhook_events_counter = _counter(
    'storefront_webhook_events_total',
    'Stripe webhook events by classified route and processing outcome',
    ['route', 'outcome']
)

webhook_rejections_counter = _counter(
    'storefront_webhook_rejections_total',
    'Stripe webhook deliveries rejected before processing',
    ['reason']
)

notifications_counter = _counter(
    'storefront_notifications_total',
    'Notification calls and emails by kind and result',
    ['kind', 'status']
)

checkout_sessions_counter = _counter(
    'storefront_checkout_sessions_total',
    'Stripe checkout sessions created by kind and result',
    ['kind', 'status']
)
