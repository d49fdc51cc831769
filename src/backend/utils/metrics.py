"""
Prometheus metrics for Chat Relay.

Covers the live streaming fan-out (subscriptions, broadcasts, heartbeats)
and chat-turn outcomes.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

NAMESPACE = "chatrelay"

# ============================================================================
# Stream Fan-out Metrics
# ============================================================================

stream_subscriptions_active = Gauge(
    f"{NAMESPACE}_stream_subscriptions_active",
    "Number of output channels currently subscribed to a chat",
)

stream_frames_total = Counter(
    f"{NAMESPACE}_stream_frames_total",
    "Frames delivered to subscribers",
    ["type"],  # frame type, e.g. "text-delta", "heartbeat"
)

stream_channels_pruned_total = Counter(
    f"{NAMESPACE}_stream_channels_pruned_total",
    "Channels unsubscribed because a send failed",
)

heartbeats_running = Gauge(
    f"{NAMESPACE}_heartbeats_running",
    "Chats with a running heartbeat",
)

uploads_active = Gauge(
    f"{NAMESPACE}_uploads_active",
    "Chats with at least one in-flight upload",
)

# ============================================================================
# Chat Turn Metrics
# ============================================================================

chat_turns_total = Counter(
    f"{NAMESPACE}_chat_turns_total",
    "Chat turns by final outcome",
    ["outcome"],  # "completed", "upstream_error", "rejected"
)

chat_turn_duration_seconds = Histogram(
    f"{NAMESPACE}_chat_turn_duration_seconds",
    "Wall time from request to assistant persisted",
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)

tool_calls_total = Counter(
    f"{NAMESPACE}_tool_calls_total",
    "Tool calls executed during chat turns",
    ["tool_name", "status"],  # status: "success", "error"
)
