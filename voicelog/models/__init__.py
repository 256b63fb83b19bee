"""
Data models for the voice pipeline.

- openai_api: client events and session configuration sent to the realtime API
- stream_events: typed inbound events
- tool_models: function tool schemas offered to the model
- records: field contracts for expense, income and time-log records
"""
