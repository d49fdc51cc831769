"""
Chat Relay - streaming chat backend
===================================

FastAPI service that relays model replies to every subscriber of a chat and
persists the conversation in PostgreSQL.

Key Features:
    - **Fan-out Streaming**: one chat turn, many SSE and WebSocket subscribers
    - **Heartbeats**: keep idle streams open while uploads are processed
    - **Durable Turns**: user message stored before the model call, reply stored once after it
    - **Tools**: weather, web search and document suggestions offered to the model
    - **Structured Logging**: JSON logs with request and chat correlation

Modules:
    api: FastAPI routes, services, middleware and the streaming core
    core: Configuration constants and system prompts
    models: Pydantic models for frames, errors and API schemas
    tools: Tool capability set offered to the model
    utils: Logging, metrics, database and client helpers
"""
