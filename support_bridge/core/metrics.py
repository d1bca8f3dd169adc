"""
Prometheus metrics for the support relay.

These metrics complement the HTTP metrics provided by
prometheus-fastapi-instrumentator.
"""

from prometheus_client import Counter, Histogram

# ============================================================================
# Relay Metrics
# ============================================================================

outbound_messages_total = Counter(
    'support_outbound_messages_total',
    'Support messages processed by the outbound relay',
    ['outcome']  # sent, skipped, failed
)

inbound_events_total = Counter(
    'support_inbound_events_total',
    'Slack events processed by the inbound relay',
    ['outcome']  # stored, challenge, ignored, unauthorized, not_found, conflict, error
)

threads_created_total = Counter(
    'support_threads_created_total',
    'Slack threads opened for first-contact users'
)

thread_binding_races_total = Counter(
    'support_thread_binding_races_total',
    'Thread bindings that lost a concurrent compare-and-set'
)

relay_duration_seconds = Histogram(
    'support_relay_duration_seconds',
    'Duration of one relay invocation in seconds',
    ['direction'],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

# ============================================================================
# Slack API Metrics
# ============================================================================

slack_api_calls_total = Counter(
    'support_slack_api_calls_total',
    'Slack Web API calls',
    ['method', 'status']
)

# ============================================================================
# MongoDB Operation Metrics
# ============================================================================

mongodb_operations_total = Counter(
    'support_mongodb_operations_total',
    'Total number of MongoDB operations',
    ['operation', 'collection', 'status']
)

# ============================================================================
# Install Metrics
# ============================================================================

index_provisioning_total = Counter(
    'support_index_provisioning_total',
    'Index provisioning attempts by outcome',
    ['outcome']  # acknowledged, already_exists, failed
)
