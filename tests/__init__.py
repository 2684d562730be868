"""docker-mcp-cli unit tests

These tests run without a docker daemon: subprocesses are replaced with
fakes from tests/helpers.py.

Test Structure:
- test_registry.py - alias table, operation catalog, workflows
- test_normalizer.py - token and structured argument normalization
- test_builder.py - argv construction, compose probe, timeouts
- test_executor.py - allow-list, daemon probe, failure classification
- test_responses.py - envelope rendering
- test_dispatcher.py - end-to-end pipeline and workflows
- test_cli.py - click commands and exit codes
- test_tool_providers.py - MCP tool listing and calls
- test_config.py - configuration file and environment overrides
- test_schema_util.py - MCP input schemas
- test_server.py - MCP server wiring and the stdio stderr filter

Usage:
    pytest tests/ -v
    pytest tests/ -m unit
    pytest tests/ -k "normalizer" -v
"""
