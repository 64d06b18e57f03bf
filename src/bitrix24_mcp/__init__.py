"""
Bitrix24 MCP Server - dispatch core.

Translates a (resource, operation) selection plus per-item parameters into
Bitrix24 REST calls and collects ordered per-item results.
"""
